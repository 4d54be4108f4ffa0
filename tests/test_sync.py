import datetime as dt
import json
import logging

import pytest

from freefall_sync.errors import (
    NetworkError,
    ParseError,
    SyncAborted,
    UnsupportedFormatError,
)
from freefall_sync.pages import strip_page_url
from freefall_sync.sync import SyncStage, run_sync

from conftest import FakeSession, make_feed, make_page, make_png

NOW = dt.datetime(2024, 3, 1, 12, 0, tzinfo=dt.timezone.utc)
ORIGIN = "http://freefall.purrsia.com"


def clock():
    return NOW


def strip_routes(config, first, latest, png):
    routes = {config.feed_url: make_feed(*range(latest - 3, latest + 1))}
    for number in range(first, latest + 1):
        url = strip_page_url(config, number, latest)
        routes[url] = make_page(number, "Feb", number % 28 + 1, 2021)
        routes[f"{ORIGIN}/ff3500/fc{number:05d}.png"] = png
    return routes


def seed_bin(config, index, dates):
    path = config.work_path / f"dates_{index}.json"
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(dates))
    return path


def read_json(path):
    return json.loads(path.read_text())


def expected_date(number):
    return f"2021-02-{number % 28 + 1:02d}"


def test_sync_fills_gap_and_finalizes_bin(config, write_reader, png_bytes):
    write_reader([{"i": 1}, {"i": 3498, "checked": 1600000000}])
    seed_bin(config, 34, ["2020-12-01"] * 99)
    session = FakeSession(strip_routes(config, 3499, 3502, png_bytes))

    result = run_sync(config, session=session, clock=clock)

    assert not result.up_to_date
    assert [strip.number for strip in result.strips] == [3499, 3500, 3501, 3502]
    for number in range(3499, 3503):
        assert (config.output_path / f"{number}.png").read_bytes() == png_bytes

    finalized = read_json(config.output_path / "dates_34.json")
    assert len(finalized) == 100
    assert finalized[-1] == expected_date(3499)
    assert not (config.work_path / "dates_34.json").exists()
    assert result.finalized_bins == [34]

    partial = read_json(config.work_path / "dates_35.json")
    assert partial == [expected_date(n) for n in (3500, 3501, 3502)]
    assert result.partial_bin == 35

    data = read_json(config.reader_path)
    assert data[0] == {"i": 1}
    assert data[-1] == {"i": 3502, "checked": int(NOW.timestamp())}

    fetched = [url for url, _ in session.calls]
    assert fetched[0] == config.feed_url
    assert config.latest_page_url in fetched
    assert fetched.index(strip_page_url(config, 3499, 3502)) < fetched.index(
        strip_page_url(config, 3500, 3502)
    )
    assert not session.closed


def test_up_to_date_only_touches_checked(config, write_reader):
    write_reader([{"i": 3502, "width": 800}])
    session = FakeSession({config.feed_url: make_feed(3501, 3502)})

    result = run_sync(config, session=session, clock=clock)

    assert result.up_to_date
    assert [url for url, _ in session.calls] == [config.feed_url]
    assert read_json(config.reader_path) == [
        {"i": 3502, "width": 800, "checked": int(NOW.timestamp())}
    ]
    assert not config.output_path.exists()


def test_starts_fresh_bin_after_boundary(config, write_reader, png_bytes):
    write_reader([{"i": 3399}])
    session = FakeSession(strip_routes(config, 3400, 3401, png_bytes))

    run_sync(config, session=session, clock=clock)

    assert read_json(config.work_path / "dates_34.json") == [
        expected_date(3400),
        expected_date(3401),
    ]


def test_sync_ending_on_boundary_leaves_no_partial(config, write_reader, png_bytes):
    write_reader([{"i": 3497}])
    seed_bin(config, 34, [None] * 98)
    session = FakeSession(strip_routes(config, 3498, 3499, png_bytes))

    result = run_sync(config, session=session, clock=clock)

    assert result.partial_bin is None
    assert read_json(config.output_path / "dates_34.json")[-2:] == [
        expected_date(3498),
        expected_date(3499),
    ]
    assert not list(config.work_path.glob("dates_*.json"))


def test_failure_keeps_resume_point_and_rerun_converges(
    config, write_reader, png_bytes, tmp_path_factory
):
    write_reader([{"i": 3498}])
    seed_bin(config, 34, ["2020-12-01"] * 99)
    routes = strip_routes(config, 3499, 3502, png_bytes)
    broken = dict(routes)
    del broken[strip_page_url(config, 3501, 3502)]

    with pytest.raises(SyncAborted) as excinfo:
        run_sync(config, session=FakeSession(broken), clock=clock)

    assert excinfo.value.stage is SyncStage.SYNCING
    assert isinstance(excinfo.value.cause, NetworkError)
    assert excinfo.value.url == strip_page_url(config, 3501, 3502)
    assert read_json(config.reader_path) == [{"i": 3498}]
    assert (config.output_path / "3500.png").exists()
    assert not (config.output_path / "3501.png").exists()

    run_sync(config, session=FakeSession(routes), clock=clock)

    reference_root = tmp_path_factory.mktemp("reference")
    reference = type(config)(root=reference_root)
    reference.reader_path.parent.mkdir(parents=True)
    reference.reader_path.write_text(json.dumps([{"i": 3498}]))
    seed_bin(reference, 34, ["2020-12-01"] * 99)
    run_sync(reference, session=FakeSession(routes), clock=clock)

    for name in ("dates_34.json", "3499.png", "3502.png"):
        assert (config.output_path / name).read_bytes() == (
            reference.output_path / name
        ).read_bytes()
    assert read_json(config.work_path / "dates_35.json") == read_json(
        reference.work_path / "dates_35.json"
    )
    assert read_json(config.reader_path) == read_json(reference.reader_path)


def test_non_png_strip_aborts(config, write_reader, png_bytes):
    write_reader([{"i": 3501}])
    routes = strip_routes(config, 3502, 3502, png_bytes)
    routes[config.latest_page_url] = make_page(3502, images=["/ff3600/fc03502.jpg"])
    routes[f"{ORIGIN}/ff3600/fc03502.jpg"] = png_bytes

    with pytest.raises(SyncAborted) as excinfo:
        run_sync(config, session=FakeSession(routes), clock=clock)

    assert isinstance(excinfo.value.cause, UnsupportedFormatError)
    assert read_json(config.reader_path) == [{"i": 3501}]


def test_landing_page_ahead_of_feed_aborts(config, write_reader, png_bytes):
    write_reader([{"i": 3501}])
    routes = strip_routes(config, 3502, 3502, png_bytes)
    routes[config.latest_page_url] = make_page(3503, "Mar", 9, 2024)
    routes[f"{ORIGIN}/ff3500/fc03503.png"] = png_bytes

    with pytest.raises(SyncAborted) as excinfo:
        run_sync(config, session=FakeSession(routes), clock=clock)

    assert excinfo.value.stage is SyncStage.SYNCING
    assert isinstance(excinfo.value.cause, ParseError)
    assert excinfo.value.url == config.latest_page_url
    assert not (config.output_path / "3502.png").exists()
    assert not (config.work_path / "dates_35.json").exists()
    assert read_json(config.reader_path) == [{"i": 3501}]


def test_feed_failure_aborts_before_touching_disk(config, write_reader):
    write_reader([{"i": 3501}])

    with pytest.raises(SyncAborted) as excinfo:
        run_sync(config, session=FakeSession(), clock=clock)

    assert excinfo.value.stage is SyncStage.CHECK_UP_TO_DATE
    assert read_json(config.reader_path) == [{"i": 3501}]


def test_local_ahead_of_upstream_aborts(config, write_reader):
    write_reader([{"i": 3600}])
    session = FakeSession({config.feed_url: make_feed(3502)})

    with pytest.raises(SyncAborted):
        run_sync(config, session=session, clock=clock)


def test_size_change_is_reported(config, write_reader, caplog):
    write_reader([{"i": 3501, "width": 800, "height": 600}])
    session = FakeSession(strip_routes(config, 3502, 3502, make_png(10, 20)))

    with caplog.at_level(logging.WARNING, logger="freefall_sync"):
        result = run_sync(config, session=session, clock=clock)

    assert (result.strips[0].width, result.strips[0].height) == (10, 20)
    assert "Strip #3502 is 10x20" in caplog.text


def test_fetch_extra_images(config, write_reader, png_bytes):
    config.fetch_extra = True
    write_reader([{"i": 3501}])
    routes = strip_routes(config, 3502, 3502, png_bytes)
    routes[config.latest_page_url] = make_page(
        3502, images=["/ff3600/fc03502.png", "/nav/next.gif", "/ff3600/fc03502b.png"]
    )
    routes[f"{ORIGIN}/ff3600/fc03502.png"] = png_bytes
    routes[f"{ORIGIN}/ff3600/fc03502b.png"] = png_bytes

    result = run_sync(config, session=FakeSession(routes), clock=clock)

    assert result.strips[0].extra_path == config.output_path / "3502-extra.png"
    assert result.strips[0].extra_path.exists()


def test_run_without_session_builds_and_closes_one(config, write_reader, monkeypatch):
    from freefall_sync import sync

    write_reader([{"i": 3502}])
    built = []

    def fake_create_session(cfg):
        session = FakeSession({cfg.feed_url: make_feed(3502)})
        built.append((cfg, session))
        return session

    monkeypatch.setattr(sync, "create_session", fake_create_session)
    run_sync(config, clock=clock)

    assert len(built) == 1
    assert built[0][0] is config
    assert built[0][1].closed


def test_own_session_is_closed_on_failure(config, write_reader, monkeypatch):
    from freefall_sync import sync

    write_reader([{"i": 3501}])
    session = FakeSession()
    monkeypatch.setattr(sync, "create_session", lambda cfg: session)

    with pytest.raises(SyncAborted):
        run_sync(config, clock=clock)
    assert session.closed
