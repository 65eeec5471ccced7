import asyncio

import pytest

from ccswitch.models.providers import AppType, Provider
from ccswitch.models.usage import UsageData, UsageResult, UsageScript
from ccswitch.services.ordering import sort_providers
from ccswitch.viewmodels.provider_list_viewmodel import ProviderListViewModel


@pytest.fixture
def notifications():
    return []


@pytest.fixture
def vm(backend, make_provider, notifications) -> ProviderListViewModel:
    backend.providers[AppType.CLAUDE] = {
        p.id: p
        for p in [
            make_provider("a", name="Alpha", created_at=1_000),
            make_provider("b", name="Bravo", created_at=2_000),
            make_provider("c", name="Charlie", created_at=3_000),
            make_provider("d", name="Delta", sort_index=0, usage_enabled=True),
        ]
    }
    backend.current[AppType.CLAUDE] = "b"
    return ProviderListViewModel(
        backend=backend,
        on_notify=lambda message, level: notifications.append((message, level)),
    )


def ids(vm: ProviderListViewModel):
    return [p.id for p in vm.sorted_providers]


def test_load_sorts_providers(vm) -> None:
    asyncio.run(vm.load())
    assert ids(vm) == ["d", "a", "b", "c"]
    assert vm.is_current("b")
    assert vm.is_loading is False


def test_load_failure_keeps_state(vm, backend) -> None:
    backend.failures["get_providers"] = OSError("missing")
    asyncio.run(vm.load())
    assert vm.sorted_providers == []
    assert "missing" in vm.error_message


def test_reorder_persists_one_contiguous_batch(vm, backend) -> None:
    updated = []

    async def on_updated():
        updated.append(True)

    vm.on_providers_updated = on_updated

    async def run():
        await vm.load()
        return await vm.reorder(3, 0)

    assert asyncio.run(run()) is True
    assert ids(vm) == ["c", "d", "a", "b"]
    assert [p.sort_index for p in vm.sorted_providers] == [0, 1, 2, 3]

    batches = backend.called("persist_sort_order")
    assert len(batches) == 1
    updates, app_type = batches[0]
    assert app_type == AppType.CLAUDE
    assert [(u.id, u.sort_index) for u in updates] == [("c", 0), ("d", 1), ("a", 2), ("b", 3)]
    assert backend.called("refresh_external_menu") == [()]
    assert updated == [True]


def test_reorder_failure_reverts_order(vm, backend, notifications) -> None:
    backend.failures["persist_sort_order"] = OSError("read-only")

    async def run():
        await vm.load()
        return await vm.reorder(0, 2)

    assert asyncio.run(run()) is False
    assert ids(vm) == ["d", "a", "b", "c"]
    assert vm.providers["a"].sort_index is None
    assert vm.providers["d"].sort_index == 0
    assert notifications == [("Failed to update sort order", "error")]
    assert backend.called("refresh_external_menu") == []


def test_drag_during_pending_save_is_dropped(vm, backend, notifications) -> None:
    backend.failures["persist_sort_order"] = OSError("read-only")

    async def run():
        await vm.load()
        backend.sort_order_gate = asyncio.Event()
        first = asyncio.create_task(vm.reorder(0, 2))
        await asyncio.sleep(0)
        assert vm.is_saving_order is True

        second = await vm.reorder(0, 1)
        backend.sort_order_gate.set()
        return second, await first

    assert asyncio.run(run()) == (False, False)
    assert len(backend.called("persist_sort_order")) == 1
    assert vm.is_saving_order is False

    stored = sort_providers(backend.providers[AppType.CLAUDE].values(), vm.language)
    assert ids(vm) == [p.id for p in stored] == ["d", "a", "b", "c"]
    assert notifications == [("Failed to update sort order", "error")]


def test_drag_after_save_completes_is_applied(vm, backend) -> None:
    async def run():
        await vm.load()
        backend.sort_order_gate = asyncio.Event()
        first = asyncio.create_task(vm.reorder(0, 2))
        await asyncio.sleep(0)
        backend.sort_order_gate.set()
        assert await first is True
        return await vm.reorder(0, 1)

    assert asyncio.run(run()) is True
    assert ids(vm) == ["b", "a", "d", "c"]
    assert {p.id: p.sort_index for p in backend.providers[AppType.CLAUDE].values()} == {
        "b": 0, "a": 1, "d": 2, "c": 3,
    }


def test_reorder_same_position_is_noop(vm, backend) -> None:
    async def run():
        await vm.load()
        return await vm.reorder(1, 1)

    assert asyncio.run(run()) is False
    assert backend.called("persist_sort_order") == []


@pytest.mark.parametrize("active_id, over_id", [("a", None), ("a", "a"), ("a", "zzz")])
def test_reorder_by_id_noop_cases(vm, backend, active_id, over_id) -> None:
    async def run():
        await vm.load()
        return await vm.reorder_by_id(active_id, over_id)

    assert asyncio.run(run()) is False
    assert backend.called("persist_sort_order") == []


def test_reorder_by_id_moves_to_target_position(vm) -> None:
    async def run():
        await vm.load()
        return await vm.reorder_by_id("a", "c")

    assert asyncio.run(run()) is True
    assert ids(vm) == ["d", "b", "c", "a"]


def test_menu_refresh_failure_does_not_undo_reorder(vm, backend) -> None:
    backend.failures["refresh_external_menu"] = RuntimeError("no tray")

    async def run():
        await vm.load()
        return await vm.reorder(0, 1)

    assert asyncio.run(run()) is True
    assert ids(vm) == ["a", "d", "b", "c"]


def test_invalid_usage_script_is_not_persisted(vm, backend, notifications) -> None:
    async def run():
        await vm.load()
        return await vm.save_usage_script("a", UsageScript(enabled=True, code=""))

    assert asyncio.run(run()) == ["Script code cannot be empty"]
    assert backend.called("persist_provider") == []
    assert notifications == [("Script code cannot be empty", "error")]


def test_valid_usage_script_is_persisted_and_queried(vm, backend) -> None:
    backend.usage_result = UsageResult.ok([UsageData(remaining=7)])
    script = UsageScript(enabled=True, code="({extractor: function(r) { return {remaining: r.x}; }})", timeout=5)

    async def run():
        await vm.load()
        return await vm.save_usage_script("a", script)

    assert asyncio.run(run()) == []
    saved, app_type = backend.called("persist_provider")[0]
    assert isinstance(saved, Provider)
    assert saved.usage_script == script
    assert saved.to_dict()["meta"]["usage_script"]["timeout"] == 5
    assert vm.providers["a"].usage_enabled is True
    assert backend.called("query_usage") == [("a", AppType.CLAUDE)]
    assert vm.footer("a").usage.plans[0].remaining == 7


def test_usage_script_persist_failure_is_reported(vm, backend, notifications) -> None:
    backend.failures["persist_provider"] = OSError("disk")

    async def run():
        await vm.load()
        return await vm.save_usage_script("a", UsageScript(enabled=False))

    errors = asyncio.run(run())
    assert errors and "disk" in errors[0]
    assert vm.providers["a"].usage_script is None
    assert notifications[-1] == ("Failed to save usage script", "error")


def test_test_usage_script_summarises_result(vm, backend, notifications) -> None:
    backend.usage_result = UsageResult.ok([UsageData(plan_name="Pro", remaining=3, unit="USD")])
    ok, message = asyncio.run(vm.test_usage_script("d"))
    assert ok is True
    assert message == "Test succeeded: [Pro] Remaining: 3.0 USD"
    assert notifications[-1] == (message, "success")


def test_test_usage_script_reports_exceptions(vm, backend) -> None:
    backend.failures["query_usage"] = RuntimeError("sandbox crashed")
    assert asyncio.run(vm.test_usage_script("d")) == (False, "Test failed: sandbox crashed")


def test_sync_footers_queries_enabled_providers_once(vm, backend) -> None:
    async def run():
        await vm.load()
        await vm.sync_footers()
        await vm.sync_footers()

    asyncio.run(run())
    assert backend.called("query_usage") == [("d", AppType.CLAUDE)]
    assert vm.footer("d") is vm.footer("d")
    assert vm.footer("a") is not vm.footer("d")


def test_api_url_per_target(vm) -> None:
    claude = Provider.from_dict(
        {"id": "x", "name": "X", "settingsConfig": {"env": {"ANTHROPIC_BASE_URL": "https://claude.example.com"}}},
        AppType.CLAUDE,
    )
    codex = Provider.from_dict(
        {"id": "y", "name": "Y", "settingsConfig": {"auth": {}, "config": "base_url = 'https://codex.example.com/v1'"}},
        AppType.CODEX,
    )
    empty = Provider.from_dict({"id": "z", "name": "Z", "settingsConfig": {}}, AppType.CLAUDE)

    assert vm.api_url(claude) == "https://claude.example.com"
    assert vm.api_url(codex) == "https://codex.example.com/v1"
    assert vm.api_url(empty) == "Not configured"
