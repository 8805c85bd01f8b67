"""Built-in CLI sub-commands for specintake.

* :mod:`~specintake.commands.parse` -- ``parse``, ``detect`` and
  ``candidates``, the commands that drive the intake pipeline.
* :mod:`~specintake.commands.config` -- view and modify user settings.

Single commands are plain callback functions registered on the root app;
multi-command groups export a :class:`typer.Typer` sub-application.
"""
