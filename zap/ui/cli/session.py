"""
CLI session — settings, privileged executor, registry and router for one command.

Every command runs its async work through ``run_with_router`` so the
backends are always closed and cross-cutting errors end the command
with a red message and exit code 1.
"""

from __future__ import annotations

import asyncio
import logging
import os
import sys
from collections.abc import Awaitable, Callable
from typing import TypeVar

import click

from zap.core.errors import ZapError

logger = logging.getLogger(__name__)

T = TypeVar("T")

PASSWORD_ENV_VAR = "SUDO_PASSWORD"


def prompt_password() -> str:
    """Ask for the sudo password once; ``$SUDO_PASSWORD`` answers for the user."""
    preset = os.environ.get(PASSWORD_ENV_VAR)
    if preset:
        return preset
    return click.prompt("[sudo] password", hide_input=True, err=True)


def run_with_router(ctx: click.Context, work: Callable[..., Awaitable[T]]) -> T:
    """Build the session and run ``work(router)`` to completion.

    Exits with status 1 on configuration, credential or tool errors.
    """
    from zap.adapters.registry import BackendRegistry
    from zap.core.config import load_settings
    from zap.core.services.privilege import PrivilegedExecutor
    from zap.core.services.router import MultiBackendRouter

    async def _main() -> T:
        settings = load_settings(ctx.obj.get("config_path"))
        executor = PrivilegedExecutor(prompt=prompt_password)
        registry = BackendRegistry.from_detection(settings, executor)
        router = MultiBackendRouter(
            registry,
            primary_id=settings.primary_backend,
            community_id=settings.community_backend,
        )
        try:
            return await work(router)
        finally:
            await registry.aclose_all()

    try:
        return asyncio.run(_main())
    except ZapError as e:
        logger.debug("Command failed", exc_info=True)
        click.secho(f"❌ {e}", fg="red", err=True)
        sys.exit(1)
