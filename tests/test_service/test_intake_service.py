"""Tests for specintake.service -- the session state machine and temp ownership."""

from __future__ import annotations

import asyncio
import json
import tempfile
from pathlib import Path

import pytest

from conftest import make_zip, raml_root
from specintake.exceptions import ParseError, ParseTimeoutError, PreparationError, ResolutionError, UsageError
from specintake.models import IntakeConfig, ProcessingOptions
from specintake.resolver import Ambiguous, Resolved
from specintake.service import IntakeService, SessionState


def run(coro):  # noqa: ANN001, ANN201
    return asyncio.run(coro)


class TestHappyPath:
    def test_zip_buffer_end_to_end(self, raml_zip: bytes) -> None:
        async def scenario():  # noqa: ANN202
            async with IntakeService(raml_zip) as service:
                await service.prepare()
                temp = service.temp
                assert service.state is SessionState.PREPARED
                assert (service.working_dir / "api.raml").is_file()
                resolution = await service.resolve()
                assert resolution == Resolved("api.raml")
                assert service.state is SessionState.RESOLVED
                result = await service.parse()
                return service, temp, result

        service, temp, result = run(scenario())
        assert not temp.exists
        assert service.temp is None
        assert result.type.type == "RAML 1.0"
        document = json.loads(result.model)["document"]
        assert document["types"]["Pet"]["type"] == "object"

    def test_parse_returns_to_idle(self, swagger_path: Path) -> None:
        async def scenario():  # noqa: ANN202
            async with IntakeService(swagger_path.read_bytes()) as service:
                await service.prepare()
                await service.resolve()
                await service.parse()
                return service.state, service.working_dir, service.main_file

        assert run(scenario()) == (SessionState.IDLE, None, None)

    def test_plain_buffer_needs_no_resolution(self, swagger_path: Path) -> None:
        async def scenario():  # noqa: ANN202
            async with IntakeService(swagger_path.read_bytes()) as service:
                await service.prepare()
                assert service.tmp_is_file
                assert service.main_file == service.temp.path.name
                temp = service.temp
                result = await service.parse()
                return temp, result

        temp, result = run(scenario())
        assert result.type.type == "OAS 2.0"
        assert not temp.exists

    def test_zip_signature_detected_without_flag(self, raml_zip: bytes) -> None:
        async def scenario():  # noqa: ANN202
            async with IntakeService(raml_zip, ProcessingOptions()) as service:
                await service.prepare()
                return service.tmp_is_file, service.main_file

        assert run(scenario()) == (False, None)

    def test_directory_source_is_never_deleted(self, multi_file_dir: Path) -> None:
        async def scenario():  # noqa: ANN202
            async with IntakeService(multi_file_dir) as service:
                await service.prepare()
                assert service.temp is None
                assert await service.resolve() == Resolved("openapi.yaml")
                return await service.parse()

        result = run(scenario())
        assert result.type.type == "OAS 3.0"
        assert (multi_file_dir / "openapi.yaml").is_file()
        assert "$ref" not in result.model

    def test_caller_supplied_main_file(self, ambiguous_zip: bytes) -> None:
        async def scenario():  # noqa: ANN202
            async with IntakeService(ambiguous_zip, ProcessingOptions(archive=True)) as service:
                await service.prepare()
                assert await service.resolve("b.raml") == Resolved("b.raml")
                return await service.parse()

        result = run(scenario())
        assert json.loads(result.model)["document"]["title"] == "B"


class TestEntryOverride:
    @pytest.fixture
    def two_roots(self, tmp_path: Path) -> Path:
        (tmp_path / "a.raml").write_text(raml_root("A"))
        (tmp_path / "b.raml").write_text(raml_root("B"))
        return tmp_path

    def test_parse_replaces_pinned_entry(self, two_roots: Path) -> None:
        async def scenario():  # noqa: ANN202
            async with IntakeService(two_roots) as service:
                await service.prepare()
                await service.resolve("a.raml")
                return await service.parse("b.raml")

        model = json.loads(run(scenario()).model)
        assert model["location"] == "b.raml"
        assert model["document"]["title"] == "B"

    def test_parse_with_same_entry(self, two_roots: Path) -> None:
        async def scenario():  # noqa: ANN202
            async with IntakeService(two_roots) as service:
                await service.prepare()
                await service.resolve("a.raml")
                return await service.parse("a.raml")

        assert json.loads(run(scenario()).model)["document"]["title"] == "A"

    def test_parse_with_unknown_entry(self, two_roots: Path) -> None:
        async def scenario():  # noqa: ANN202
            async with IntakeService(two_roots) as service:
                await service.prepare()
                await service.resolve("a.raml")
                with pytest.raises(UsageError, match="API main file does not exist: c.raml"):
                    await service.parse("c.raml")
                return service.state, service.main_file

        assert run(scenario()) == (SessionState.IDLE, None)


class TestSingleFlight:
    def test_overlapping_prepare_leaves_no_temp(self, raml_zip: bytes) -> None:
        before = set(Path(tempfile.gettempdir()).glob("specintake-*"))

        async def scenario():  # noqa: ANN202
            service = IntakeService(raml_zip)
            results = await asyncio.gather(service.prepare(), service.prepare(), return_exceptions=True)
            await service.cleanup()
            return results

        first, second = run(scenario())
        assert first is None
        assert isinstance(second, UsageError)
        assert set(Path(tempfile.gettempdir()).glob("specintake-*")) <= before

    def test_cancel_during_prepare(self, raml_zip: bytes) -> None:
        before = set(Path(tempfile.gettempdir()).glob("specintake-*"))

        async def scenario():  # noqa: ANN202
            service = IntakeService(raml_zip)
            results = await asyncio.gather(service.prepare(), service.cancel(), return_exceptions=True)
            return results, service.state, service.temp

        (prepared, cancelled), state, temp = run(scenario())
        assert isinstance(prepared, UsageError)
        assert cancelled is None
        assert state is SessionState.CANCELLED
        assert temp is None
        assert set(Path(tempfile.gettempdir()).glob("specintake-*")) <= before

    def test_overlapping_parse_runs_once(self, swagger_path: Path) -> None:
        async def scenario():  # noqa: ANN202
            async with IntakeService(swagger_path) as service:
                await service.prepare()
                return await asyncio.gather(service.parse(), service.parse(), return_exceptions=True)

        first, second = run(scenario())
        assert first.type.type == "OAS 2.0"
        assert isinstance(second, UsageError)


class TestAmbiguity:
    def test_ambiguous_stays_prepared(self, ambiguous_zip: bytes) -> None:
        async def scenario():  # noqa: ANN202
            async with IntakeService(ambiguous_zip) as service:
                await service.prepare()
                resolution = await service.resolve()
                return resolution, service.state, service.temp is not None

        resolution, state, has_temp = run(scenario())
        assert resolution == Ambiguous(("a.raml", "b.raml"))
        assert state is SessionState.PREPARED
        assert has_temp

    def test_choose_entry_resumes(self, ambiguous_zip: bytes) -> None:
        async def scenario():  # noqa: ANN202
            async with IntakeService(ambiguous_zip) as service:
                await service.prepare()
                resolution = await service.resolve()
                chosen = await service.choose_entry(resolution.candidates[0])
                assert chosen == Resolved("a.raml")
                return await service.parse()

        assert json.loads(run(scenario()).model)["document"]["title"] == "A"

    def test_declining_cancels(self, ambiguous_zip: bytes) -> None:
        async def scenario():  # noqa: ANN202
            async with IntakeService(ambiguous_zip) as service:
                await service.prepare()
                temp = service.temp
                await service.resolve()
                assert await service.choose_entry(None) is None
                return service.state, temp

        state, temp = run(scenario())
        assert state is SessionState.CANCELLED
        assert not temp.exists

    def test_parse_with_choice(self, ambiguous_zip: bytes) -> None:
        async def scenario():  # noqa: ANN202
            async with IntakeService(ambiguous_zip) as service:
                await service.prepare()
                await service.resolve()
                return await service.parse("b.raml")

        assert json.loads(run(scenario()).model)["document"]["title"] == "B"


class TestErrors:
    def test_missing_main_file_is_a_usage_error(self, ambiguous_zip: bytes) -> None:
        async def scenario():  # noqa: ANN202
            async with IntakeService(ambiguous_zip) as service:
                await service.prepare()
                temp = service.temp
                with pytest.raises(UsageError, match="API main file does not exist: missing.raml"):
                    await service.resolve("missing.raml")
                return service.state, temp

        state, temp = run(scenario())
        assert state is SessionState.IDLE
        assert not temp.exists

    def test_resolve_before_prepare(self, raml_zip: bytes) -> None:
        async def scenario() -> None:
            async with IntakeService(raml_zip) as service:
                await service.resolve()

        with pytest.raises(UsageError, match="prepare"):
            run(scenario())

    def test_parse_before_prepare(self, raml_zip: bytes) -> None:
        async def scenario() -> None:
            async with IntakeService(raml_zip) as service:
                await service.parse()

        with pytest.raises(UsageError, match="prepare"):
            run(scenario())

    def test_parse_before_resolve(self, ambiguous_zip: bytes) -> None:
        async def scenario():  # noqa: ANN202
            async with IntakeService(ambiguous_zip) as service:
                await service.prepare()
                temp = service.temp
                with pytest.raises(UsageError, match="resolve"):
                    await service.parse()
                return temp

        assert not run(scenario()).exists

    def test_prepare_twice(self, raml_zip: bytes) -> None:
        async def scenario():  # noqa: ANN202
            async with IntakeService(raml_zip) as service:
                await service.prepare()
                temp = service.temp
                with pytest.raises(UsageError):
                    await service.prepare()
                return temp

        assert not run(scenario()).exists

    def test_prepare_without_source(self) -> None:
        async def scenario() -> None:
            async with IntakeService() as service:
                await service.prepare()

        with pytest.raises(UsageError, match="No source"):
            run(scenario())

    def test_corrupt_archive(self) -> None:
        async def scenario():  # noqa: ANN202
            async with IntakeService(b"PK\x03\x04garbage") as service:
                with pytest.raises(PreparationError):
                    await service.prepare()
                return service.state, service.temp

        assert run(scenario()) == (SessionState.IDLE, None)

    def test_archive_without_api_files(self) -> None:
        async def scenario():  # noqa: ANN202
            async with IntakeService(make_zip({"readme.md": "# hi"})) as service:
                await service.prepare()
                temp = service.temp
                with pytest.raises(ResolutionError):
                    await service.resolve()
                return temp

        assert not run(scenario()).exists

    def test_unsupported_entry_file(self) -> None:
        async def scenario():  # noqa: ANN202
            async with IntakeService(b"just: yaml\n") as service:
                await service.prepare()
                temp = service.temp
                with pytest.raises(ResolutionError, match="Unsupported API file"):
                    await service.parse()
                return temp

        assert not run(scenario()).exists

    def test_parse_error_removes_temp(self) -> None:
        data = make_zip({"api.raml": raml_root() + "types: !include missing.raml\n"})

        async def scenario():  # noqa: ANN202
            async with IntakeService(data) as service:
                await service.prepare()
                temp = service.temp
                await service.resolve()
                with pytest.raises(ParseError, match="Unable to parse API"):
                    await service.parse()
                return temp, service.state

        temp, state = run(scenario())
        assert not temp.exists
        assert state is SessionState.IDLE

    def test_timeout(self, raml_zip: bytes, hanging_worker: list[str]) -> None:
        async def scenario():  # noqa: ANN202
            config = IntakeConfig(parse_timeout_ms=500)
            async with IntakeService(raml_zip, config=config, worker_command=hanging_worker) as service:
                await service.prepare()
                temp = service.temp
                await service.resolve()
                with pytest.raises(ParseTimeoutError, match="API parsing timeout"):
                    await service.parse()
                return temp, service.supervisor.is_alive

        temp, alive = run(scenario())
        assert not temp.exists
        assert not alive


class TestLifecycle:
    def test_cleanup_twice(self, raml_zip: bytes) -> None:
        async def scenario():  # noqa: ANN202
            service = IntakeService(raml_zip)
            await service.prepare()
            temp = service.temp
            await service.cleanup()
            await service.cleanup()
            return service.state, temp

        state, temp = run(scenario())
        assert state is SessionState.CLEANED
        assert not temp.exists

    def test_cleanup_kills_idle_worker(self, swagger_path: Path) -> None:
        async def scenario():  # noqa: ANN202
            service = IntakeService(swagger_path)
            await service.prepare()
            await service.parse()
            alive_before = service.supervisor.is_alive
            await service.cleanup()
            return alive_before, service.supervisor.is_alive, service.supervisor.idle_timer_armed

        assert run(scenario()) == (True, False, False)

    def test_cancel(self, raml_zip: bytes) -> None:
        async def scenario():  # noqa: ANN202
            async with IntakeService(raml_zip) as service:
                await service.prepare()
                temp = service.temp
                await service.cancel()
                return service.state, temp

        state, temp = run(scenario())
        assert state is SessionState.CANCELLED
        assert not temp.exists

    def test_set_source_starts_a_new_session(self, raml_zip: bytes, swagger_path: Path) -> None:
        async def scenario():  # noqa: ANN202
            async with IntakeService(raml_zip) as service:
                await service.prepare()
                await service.cancel()
                service.set_source(swagger_path)
                assert service.state is SessionState.IDLE
                await service.prepare()
                return await service.parse()

        assert run(scenario()).type.type == "OAS 2.0"

    def test_set_source_warns_about_held_temp(
        self, raml_zip: bytes, caplog: pytest.LogCaptureFixture
    ) -> None:
        async def scenario():  # noqa: ANN202
            service = IntakeService(raml_zip)
            await service.prepare()
            leaked = service.temp
            service.set_source(raml_zip)
            leaked.remove()

        run(scenario())
        assert "still owns" in caplog.text

    def test_caller_file_survives_parse(self, swagger_path: Path) -> None:
        async def scenario():  # noqa: ANN202
            async with IntakeService(swagger_path) as service:
                await service.prepare()
                assert service.main_file == "petstore-swagger.json"
                return await service.parse()

        run(scenario())
        assert swagger_path.is_file()
