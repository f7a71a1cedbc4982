"""Tests for plugin discovery and registration."""

from __future__ import annotations

from schemalens.plugins.hookspecs import hookimpl
from schemalens.plugins.manager import PluginManager


class RejectRecorder:
    def __init__(self) -> None:
        self.rejected: list[str] = []

    @hookimpl
    def post_fk_reject(self, project_id: int, edge_id: str, logical_fk_id: int) -> None:
        self.rejected.append(edge_id)


class NotAPlugin:
    def helper(self) -> None:
        pass


class TestPluginManager:
    def test_register_and_list(self) -> None:
        pm = PluginManager()
        pm.register_plugin(RejectRecorder())
        assert "RejectRecorder" in pm.list_plugin_names()

    def test_register_with_name(self) -> None:
        pm = PluginManager()
        pm.register_plugin(RejectRecorder(), name="recorder")
        assert pm.list_plugin_names() == ["recorder"]

    def test_unregister(self) -> None:
        pm = PluginManager()
        plugin = RejectRecorder()
        pm.register_plugin(plugin)
        pm.unregister(plugin)
        assert pm.get_plugins() == []

    def test_hook_dispatch(self) -> None:
        pm = PluginManager()
        plugin = RejectRecorder()
        pm.register_plugin(plugin)
        pm.hook.post_fk_reject(project_id=1, edge_id="logical-7", logical_fk_id=7)
        assert plugin.rejected == ["logical-7"]

    def test_discover_marks_loaded(self) -> None:
        pm = PluginManager()
        assert pm.is_loaded is False
        pm.discover_and_load()
        assert pm.is_loaded is True

    def test_has_hook_impls(self) -> None:
        assert PluginManager._has_hook_impls(RejectRecorder) is True
        assert PluginManager._has_hook_impls(NotAPlugin) is False

    def test_normalize_instantiates_classes(self) -> None:
        pm = PluginManager()
        pm._pm.register(RejectRecorder, name="audit")
        pm._normalize_plugin_instances()
        plugins = pm.get_plugins()
        assert len(plugins) == 1
        assert isinstance(plugins[0], RejectRecorder)


class TestBlockedPlugins:
    def test_blocked_name_is_not_registered(self) -> None:
        pm = PluginManager(blocked=["recorder"])
        assert pm.register_plugin(RejectRecorder(), name="recorder") is False
        assert pm.get_plugins() == []

    def test_other_names_still_register(self) -> None:
        pm = PluginManager(blocked=["recorder"])
        assert pm.register_plugin(RejectRecorder(), name="other") is True
        assert pm.list_plugin_names() == ["other"]

    def test_is_blocked(self) -> None:
        pm = PluginManager(blocked=["audit"])
        assert pm.is_blocked("audit") is True
        assert pm.is_blocked("recorder") is False

    def test_blocked_plugin_receives_no_hooks(self) -> None:
        pm = PluginManager(blocked=["RejectRecorder"])
        plugin = RejectRecorder()
        pm.register_plugin(plugin)
        pm.hook.post_fk_reject(project_id=1, edge_id="logical-7", logical_fk_id=7)
        assert plugin.rejected == []
