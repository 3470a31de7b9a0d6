"""Built-in CLI sub-commands for swcache.

* :mod:`~swcache.commands.worker` -- ``deploy``, ``fetch`` and ``message``:
  drive a :class:`~swcache.worker.CacheWorker` from the shell.
* :mod:`~swcache.commands.stores` -- list, inspect and delete stores.
* :mod:`~swcache.commands.config` -- view and modify global settings.

Group modules export a :class:`typer.Typer` sub-application; single
commands are plain callbacks registered on the root app.
"""
