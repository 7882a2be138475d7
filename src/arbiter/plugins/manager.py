"""Plugin discovery and loading.

Discovery: entry_points (pip-installed) via pluggy setuptools entrypoints,
plus local directory discovery from ``.arbiter/plugins/``.
Capabilities: behavior registration and world lifecycle hooks.
"""

from __future__ import annotations

import importlib.util
import inspect
import logging
import sys
from pathlib import Path
from typing import Any

import pluggy

from arbiter.engine.machine import BehaviorRegistry
from arbiter.plugins.hookspecs import ArbiterHookSpec

PROJECT_NAME = "arbiter"
ENTRY_POINT_GROUP = "arbiter.plugins"

logger = logging.getLogger(__name__)


class PluginManager:
    """Manages plugin discovery, loading, and hook dispatch."""

    def __init__(self) -> None:
        self._pm = pluggy.PluginManager(PROJECT_NAME)
        self._pm.add_hookspecs(ArbiterHookSpec)
        self._loaded: bool = False

    def discover_and_load(
        self,
        *,
        local_dir: Path | None = None,
        disabled: list[str] | None = None,
        builtins: bool = True,
    ) -> list[str]:
        """Register built-ins, entry-point plugins, and local plugins.

        Returns the names of all registered plugins.
        """
        if builtins:
            from arbiter.plugins.builtins.behaviors import BuiltinBehaviorsPlugin

            self.register_plugin(BuiltinBehaviorsPlugin(), name="builtin_behaviors")
        for name in disabled or []:
            self._pm.set_blocked(name)
        self._pm.load_setuptools_entrypoints(ENTRY_POINT_GROUP)
        self._normalize_plugin_instances()
        if local_dir is not None:
            self._discover_local(local_dir)
        self._loaded = True
        return self.list_plugin_names()

    def register_plugin(self, plugin: object, name: str | None = None) -> None:
        """Register a plugin instance directly (e.g. built-in plugins)."""
        resolved_name = name or plugin.__class__.__name__
        self._pm.register(plugin, name=resolved_name)
        logger.debug("Registered plugin: %s", resolved_name)

    def unregister(self, plugin: object) -> None:
        self._pm.unregister(plugin)

    @property
    def is_loaded(self) -> bool:
        return self._loaded

    @property
    def hook(self) -> pluggy.HookRelay:
        return self._pm.hook

    def list_plugin_names(self) -> list[str]:
        return [self._pm.get_name(p) or p.__class__.__name__ for p in self._pm.get_plugins()]

    # ------------------------------------------------------------------
    # Behaviors and lifecycle hooks
    # ------------------------------------------------------------------

    def behavior_registry(self) -> BehaviorRegistry:
        """Collect every plugin's behaviors into one registry.

        A plugin returning something other than a mapping of behavior
        classes is skipped with a warning.
        """
        registry = BehaviorRegistry()
        for plugin in self._pm.get_plugins():
            plugin_name = self._pm.get_name(plugin) or plugin.__class__.__name__
            hook = getattr(plugin, "register_behaviors", None)
            if hook is None:
                continue
            try:
                behavior_map = hook()
            except Exception:
                logger.warning(
                    "Failed to collect behaviors from plugin %s", plugin_name, exc_info=True
                )
                continue
            if behavior_map is None:
                continue
            if not isinstance(behavior_map, dict):
                logger.warning("Plugin %s returned non-dict behavior registrations", plugin_name)
                continue
            for behavior_name, behavior_cls in behavior_map.items():
                try:
                    registry.register(behavior_cls, name=behavior_name)
                except TypeError:
                    logger.warning(
                        "Skipping behavior registration %r from plugin %s",
                        behavior_name,
                        plugin_name,
                        exc_info=True,
                    )
        return registry

    def notify(self, hook_name: str, **payload: Any) -> list[str]:
        """Call a lifecycle hook. Failures become warning strings.

        INVARIANT: Plugin failures are warnings, never errors.
        """
        hook_fn = getattr(self._pm.hook, hook_name, None)
        if hook_fn is None:
            return [f"Unknown hook {hook_name}"]
        try:
            hook_fn(**payload)
        except Exception as exc:
            logger.warning("Hook %s failed: %s", hook_name, exc, exc_info=True)
            return [f"Plugin hook {hook_name} failed: {exc}"]
        return []

    # ------------------------------------------------------------------
    # Local directory discovery
    # ------------------------------------------------------------------

    def _discover_local(self, local_dir: Path) -> None:
        """Scan *local_dir* for single-file Python plugins.

        Each ``*.py`` file (excluding ``_``-prefixed names) is loaded as a
        module. Classes inside the module that carry pluggy hookimpl-decorated
        methods are instantiated and registered.

        Errors are logged as warnings but never raised.
        """
        if not local_dir.is_dir():
            return

        for py_file in sorted(local_dir.glob("*.py")):
            if py_file.name.startswith("_"):
                continue
            module_name = f"arbiter_local_plugin_{py_file.stem}"
            try:
                spec = importlib.util.spec_from_file_location(module_name, py_file)
                if spec is None or spec.loader is None:
                    logger.warning("Could not create module spec for %s", py_file)
                    continue
                module = importlib.util.module_from_spec(spec)
                sys.modules[module_name] = module
                spec.loader.exec_module(module)
            except Exception:
                sys.modules.pop(module_name, None)
                logger.warning("Failed to load local plugin %s", py_file, exc_info=True)
                continue

            for _, obj in inspect.getmembers(module, inspect.isclass):
                if obj.__module__ != module_name or not self._has_hook_impls(obj):
                    continue
                try:
                    self.register_plugin(obj(), name=f"{module_name}.{obj.__name__}")
                    logger.debug("Loaded local plugin %s from %s", obj.__name__, py_file)
                except Exception:
                    logger.warning(
                        "Failed to instantiate plugin class %s from %s",
                        obj.__name__,
                        py_file,
                        exc_info=True,
                    )

    def _normalize_plugin_instances(self) -> None:
        """Replace registered plugin classes with instantiated objects.

        Entry-point loading may register a plugin class directly, which
        leaves ``self`` unbound at dispatch time.
        """
        for plugin in list(self._pm.get_plugins()):
            if not inspect.isclass(plugin) or not self._has_hook_impls(plugin):
                continue

            plugin_name = self._pm.get_name(plugin) or plugin.__name__
            self._pm.unregister(plugin)
            try:
                instance = plugin()
            except Exception:
                logger.warning(
                    "Failed to instantiate entry-point plugin %s", plugin_name, exc_info=True
                )
                continue
            self._pm.register(instance, name=plugin_name)
            logger.debug("Instantiated entry-point plugin: %s", plugin_name)

    @staticmethod
    def _has_hook_impls(cls: type) -> bool:
        """Check whether *cls* has any methods decorated with ``@hookimpl``.

        Pluggy's ``HookimplMarker("arbiter")`` sets an ``arbiter_impl``
        attribute on decorated methods.
        """
        for name in dir(cls):
            if name.startswith("_"):
                continue
            if hasattr(getattr(cls, name, None), f"{PROJECT_NAME}_impl"):
                return True
        return False
