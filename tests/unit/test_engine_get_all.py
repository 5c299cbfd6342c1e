import datetime as dt

import pytest

from trapcam.core.engine import ReconciliationEngine
from trapcam.core.errors import ConsistencyError, RemoteRejected, StoreUnavailable
from trapcam.core.settings import PersistedGeneral, PersistedSettings


@pytest.mark.asyncio
async def test_get_all_combines_file_clock_and_daemon(engine: ReconciliationEngine) -> None:
    settings = await engine.get_all()

    assert settings.camera.shot_types == ["pictures"]
    assert settings.camera.picture_quality == 80
    assert settings.camera.video_quality == 70
    assert settings.general.device_name == "trap-01"
    assert settings.general.site_name == "forest"
    assert settings.general.time_zone == "Europe/Luxembourg"
    assert settings.triggering.sensitivity == 9.51
    assert settings.triggering.sleeping_time == "22:00"
    assert settings.triggering.waking_up_time == "06:30"


@pytest.mark.asyncio
async def test_get_all_end_to_end_luxembourg(engine: ReconciliationEngine, store, clock) -> None:
    store.document = PersistedSettings(general=PersistedGeneral(site_name="s", device_name="d"))
    clock.now = dt.datetime.fromisoformat("2022-01-18T14:48:37+01:00")
    clock.time_zone = "Europe/Luxembourg"

    settings = await engine.get_all()
    wire = settings.model_dump(mode="json", by_alias=True)

    assert wire["general"]["siteName"] == "s"
    assert wire["general"]["deviceName"] == "d"
    assert wire["general"]["timeZone"] == "Europe/Luxembourg"
    assert wire["general"]["systemTime"] == "2022-01-18T14:48:37+01:00"
    assert wire["triggering"]["sleepingTime"] is None


@pytest.mark.asyncio
async def test_get_all_reports_both_shot_types(engine: ReconciliationEngine, daemon) -> None:
    daemon.options.update(picture_output="on", movie_output="on")
    settings = await engine.get_all()
    assert settings.camera.shot_types == ["pictures", "videos"]


@pytest.mark.asyncio
async def test_get_all_degrades_when_daemon_unreachable(engine: ReconciliationEngine, daemon) -> None:
    daemon.refuse_connections = True

    settings = await engine.get_all()

    assert settings.camera.shot_types == []
    assert settings.camera.picture_quality == 0
    assert settings.camera.video_quality == 0
    assert settings.triggering.sensitivity == 0
    assert settings.general.device_name == "trap-01"


@pytest.mark.asyncio
async def test_get_all_propagates_rejected_daemon_reads(engine: ReconciliationEngine, daemon) -> None:
    daemon.reject.add("threshold")
    with pytest.raises(RemoteRejected):
        await engine.get_all()


@pytest.mark.asyncio
async def test_get_all_propagates_missing_settings_file(engine: ReconciliationEngine, store) -> None:
    store.unavailable = True
    with pytest.raises(StoreUnavailable):
        await engine.get_all()


@pytest.mark.asyncio
async def test_get_all_detects_time_zone_mismatch(engine: ReconciliationEngine, store) -> None:
    store.document.general.time_zone = "Europe/Paris"
    with pytest.raises(ConsistencyError):
        await engine.get_all()


@pytest.mark.asyncio
async def test_get_all_accepts_matching_recorded_time_zone(
    engine: ReconciliationEngine, store
) -> None:
    store.document.general.time_zone = "Europe/Luxembourg"
    settings = await engine.get_all()
    assert settings.general.time_zone == "Europe/Luxembourg"
    assert store.writes == []


@pytest.mark.asyncio
async def test_get_all_reports_invalid_stored_name_as_store_error(
    engine: ReconciliationEngine, store
) -> None:
    # Older firmware accepted underscores in device names.
    store.document.general.device_name = "trap_01"
    with pytest.raises(StoreUnavailable):
        await engine.get_all()


@pytest.mark.asyncio
async def test_get_all_reports_malformed_sleep_time_as_store_error(
    engine: ReconciliationEngine, store
) -> None:
    store.document.triggering.sleeping_time = "25:99"
    with pytest.raises(StoreUnavailable):
        await engine.get_all()
