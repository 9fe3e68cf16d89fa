import pytest

from offline_cache import (
    AssetRequest,
    CacheManifest,
    InstallError,
    LifecycleError,
    OfflineError,
    WorkerState,
)
from tests.conftest import ASSETS, StubResponse, make_controller as _controller


@pytest.fixture
def active(cache_storage, session):
    controller = _controller(cache_storage, session)
    controller.install()
    controller.activate()
    yield controller
    controller.close()


class TestInstall:
    def test_install_populates_every_asset(self, cache_storage, session):
        controller = _controller(cache_storage, session)
        assert controller.state is WorkerState.PARSED

        controller.install()

        assert controller.state is WorkerState.INSTALLED
        assert controller.waiting is False
        assert cache_storage.open("v2").urls() == sorted(ASSETS)
        assert cache_storage.open("v2").match("/app.js").body == b"console.log(1)"

    def test_one_failed_asset_fails_the_whole_install(self, cache_storage, session):
        del session.routes["http://app.test/app.js"]
        controller = _controller(cache_storage, session)

        with pytest.raises(InstallError):
            controller.install()

        assert controller.state is WorkerState.REDUNDANT
        assert cache_storage.keys() == []

    def test_error_status_fails_the_install(self, cache_storage, session):
        session.routes["http://app.test/app.js"] = StubResponse(status_code=404)
        with pytest.raises(InstallError):
            _controller(cache_storage, session).install()
        assert cache_storage.keys() == []

    def test_failed_upgrade_keeps_previous_generation_serving(self, cache_storage, session):
        old = _controller(cache_storage, session, tag="v1")
        old.install()
        old.activate()

        session.offline = True
        with pytest.raises(InstallError):
            _controller(cache_storage, session, tag="v2").install()

        assert cache_storage.keys() == ["v1"]
        assert cache_storage.active_tag() == "v1"
        assert old.fetch(AssetRequest("/app.js")).body == b"console.log(1)"

    def test_timeout_is_passed_to_every_fetch(self, cache_storage, session):
        _controller(cache_storage, session).install()
        assert {timeout for _, timeout in session.calls} == {5}

    def test_cannot_install_twice(self, active):
        with pytest.raises(LifecycleError):
            active.install()


class TestActivate:
    def test_deletes_only_stale_generations(self, cache_storage, session):
        _controller(cache_storage, session, tag="v1").install()
        current = _controller(cache_storage, session, tag="v2")
        current.install()
        assert cache_storage.keys() == ["v1", "v2"]

        deleted = current.activate()

        assert deleted == ["v1"]
        assert cache_storage.keys() == ["v2"]
        assert current.state is WorkerState.ACTIVATED
        assert current.controls_clients is True

    def test_activate_requires_install(self, cache_storage, session):
        with pytest.raises(LifecycleError):
            _controller(cache_storage, session).activate()

    def test_new_controller_for_active_generation_starts_activated(self, active, cache_storage, session):
        assert _controller(cache_storage, session).state is WorkerState.ACTIVATED
        assert _controller(cache_storage, session, tag="v3").state is WorkerState.PARSED


class TestFetch:
    def test_fetch_requires_activation(self, cache_storage, session):
        with pytest.raises(LifecycleError):
            _controller(cache_storage, session).fetch(AssetRequest("/app.js"))

    def test_cache_hit_skips_the_network(self, active, session):
        calls_before = len(session.calls)
        session.routes["http://app.test/app.js"] = StubResponse(content=b"newer")

        response = active.fetch(AssetRequest("/app.js"))

        assert response.body == b"console.log(1)"
        assert len(session.calls) == calls_before

    def test_miss_is_fetched_and_stored(self, active, session):
        session.routes["http://app.test/extra.css"] = StubResponse(content=b"body{}")

        response = active.fetch(AssetRequest("/extra.css"))
        active.wait_for_pending()
        session.offline = True

        assert response.status == 200
        assert active.fetch(AssetRequest("/extra.css")).body == b"body{}"

    def test_non_200_responses_are_returned_but_not_stored(self, active, session, cache_storage):
        session.routes["http://app.test/missing.png"] = StubResponse(status_code=404)

        assert active.fetch(AssetRequest("/missing.png")).status == 404
        active.wait_for_pending()
        assert cache_storage.match("/missing.png") is None

    def test_absolute_urls_are_fetched_as_is(self, active, session):
        session.routes["https://cdn.test/lib.js"] = StubResponse(content=b"lib")
        assert active.fetch(AssetRequest("https://cdn.test/lib.js")).body == b"lib"

    def test_offline_html_request_gets_the_cached_page(self, active, session):
        session.offline = True
        response = active.fetch(AssetRequest("/settings", accept="text/html,application/xhtml+xml"))
        assert response.body == b"<html>index</html>"

    def test_offline_non_html_request_fails(self, active, session):
        session.offline = True
        with pytest.raises(OfflineError):
            active.fetch(AssetRequest("/data.json", accept="application/json"))


def test_manifest_from_file(tmp_path):
    path = tmp_path / "manifest.json"
    path.write_text('{"tag": "v9", "assets": ["/", "/index.html"]}', encoding="utf-8")

    manifest = CacheManifest.from_file(path)

    assert manifest.tag == "v9"
    assert manifest.assets == ("/", "/index.html")


def test_manifest_rejects_unsafe_tags():
    with pytest.raises(ValueError):
        CacheManifest(tag="../escape", assets=("/index.html",))
