"""Operation tracking: registry, launcher, event listener and batch runner.

Import from the submodules directly; the error handler depends on
``penumbra.operations.models`` and the launcher depends on the error handler.
"""
