# Path: llama_server/engine/backend.py
"""
Compute Backends

Optional hardware-acceleration bundles and the set type used to request
them. macOS builds ship without any of these backends, so on macOS every
set is filtered down to empty.
"""

import platform
from enum import Enum
from typing import Iterable, Iterator

from llama_server.constants import BACKEND_DIRNAME_PREFIX

# Read at call time so the platform filter can be exercised in tests
HOST_SYSTEM: str = platform.system()


class Backend(Enum):
    """A compute backend. Declaration order is the canonical order."""
    CUDA = 'cuda'
    HIP = 'hip'

    @property
    def order(self) -> int:
        return list(Backend).index(self)

    @property
    def directory(self) -> str:
        """Directory name of the extracted bundle (e.g. 'backend-cuda')."""
        return f"{BACKEND_DIRNAME_PREFIX}{self.value}"

    @property
    def label(self) -> str:
        return {Backend.CUDA: 'CUDA', Backend.HIP: 'HIP'}[self]

    def __lt__(self, other):
        if not isinstance(other, Backend):
            return NotImplemented
        return self.order < other.order


def backends_supported() -> bool:
    """Whether the host platform can run any compute backend."""
    return HOST_SYSTEM != 'Darwin'


class BackendSet:
    """
    Immutable set of compute backends.

    Example:
        requested = BackendSet.parse('cuda,hip')
        installed = requested.normalize()   # empty on macOS
        for backend in requested.available():
            ...
    """

    __slots__ = ('_backends',)

    def __init__(self, backends: Iterable[Backend] = ()):
        backends = frozenset(backends)

        for backend in backends:
            if not isinstance(backend, Backend):
                raise TypeError(f"Not a backend: {backend!r}")

        self._backends = backends

    @classmethod
    def empty(cls) -> 'BackendSet':
        return cls()

    @classmethod
    def all(cls) -> 'BackendSet':
        return cls(Backend)

    @classmethod
    def of(cls, *backends: Backend) -> 'BackendSet':
        return cls(backends)

    @classmethod
    def parse(cls, text: str) -> 'BackendSet':
        """
        Parse a comma-separated list of backend names.

        Args:
            text: e.g. 'cuda,hip', 'all' or '' for none

        Raises:
            ValueError: On unknown backend names
        """
        names = [name.strip().lower() for name in text.split(',') if name.strip()]

        if names == ['all']:
            return cls.all()

        try:
            return cls(Backend(name) for name in names)
        except ValueError:
            known = ', '.join(backend.value for backend in Backend)
            raise ValueError(f"Unknown backend in {text!r} (known: {known})") from None

    def available(self) -> Iterator[Backend]:
        """
        Yield the backends of this set usable on the host platform,
        in canonical order.
        """
        if not backends_supported():
            return iter(())

        return iter(sorted(self._backends))

    def normalize(self) -> 'BackendSet':
        """Return a new set with unavailable backends filtered out."""
        return BackendSet(self.available())

    def is_empty(self) -> bool:
        return not self._backends

    def __contains__(self, backend) -> bool:
        return backend in self._backends

    def __iter__(self) -> Iterator[Backend]:
        return iter(sorted(self._backends))

    def __len__(self) -> int:
        return len(self._backends)

    def __or__(self, other: 'BackendSet') -> 'BackendSet':
        if not isinstance(other, BackendSet):
            return NotImplemented
        return BackendSet(self._backends | other._backends)

    def __eq__(self, other) -> bool:
        if not isinstance(other, BackendSet):
            return NotImplemented
        return self._backends == other._backends

    def __hash__(self) -> int:
        return hash(self._backends)

    def __repr__(self) -> str:
        names = ', '.join(backend.name for backend in self)
        return f"BackendSet({{{names}}})"

    def __str__(self) -> str:
        return ','.join(backend.value for backend in self) or 'none'


__all__ = ['Backend', 'BackendSet', 'backends_supported']
