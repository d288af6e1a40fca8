"""Taichi runtime initialisation.

Every module that declares ``ti.field`` storage (materials, lights, the
environment table, scene primitives) must be imported *after* ``init`` has
been called, since ``ti.init`` discards fields declared earlier.

Example:
    >>> from mcshade.core.runtime import init
    >>> init(random_seed=7)
    >>> from mcshade.scene.manager import SceneManager
    >>> scene = SceneManager()
"""

import logging

import taichi as ti

logger = logging.getLogger(__name__)


def init(arch=None, random_seed: int = 0, debug: bool = False, **kwargs) -> None:
    """Initialise Taichi for light-transport estimation.

    Floating point defaults to 64 bits so that sample densities and their
    independently evaluated pdfs agree to 1e-6.

    Args:
        arch: Taichi backend. Defaults to ``ti.cpu``.
        random_seed: Seed for the per-thread random streams used by the
            integrators.
        debug: Enable Taichi debug mode, which activates device-side
            ``assert`` checks on probability densities. Fast math is turned
            off unless requested, so NaN densities fail those checks.
        **kwargs: Forwarded to ``ti.init``.
    """
    if arch is None:
        arch = ti.cpu
    if debug:
        kwargs.setdefault("fast_math", False)
    ti.init(
        arch=arch,
        default_fp=ti.f64,
        random_seed=random_seed,
        debug=debug,
        **kwargs,
    )
    logger.info("Taichi initialised (arch=%s, seed=%d, debug=%s)", arch, random_seed, debug)
