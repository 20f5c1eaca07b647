"""Adapters that turn binding-specific property values into plain Python values.

pywin32's dynamic dispatch already hands back native tuples, ints and strs.
Other COM bridges wrap each array element in a VARIANT-like object that
exposes the real value through a ``value`` attribute. The adapter is chosen
once at startup so the tail loop never branches on the binding.
"""

import logging

logger = logging.getLogger(__name__)


class ValueAdapter:
    name = "base"

    def unwrap(self, value):
        raise NotImplementedError

    def unwrap_array(self, values) -> list:
        """Unwrap every element; a missing array becomes an empty list."""
        if values is None:
            return []
        return [self.unwrap(v) for v in values]


class PassthroughAdapter(ValueAdapter):
    name = "pywin32"

    def unwrap(self, value):
        return value


class VariantUnwrapAdapter(ValueAdapter):
    name = "variant"

    def unwrap(self, value):
        return value.value if hasattr(value, "value") else value


_ADAPTERS = {
    PassthroughAdapter.name: PassthroughAdapter,
    VariantUnwrapAdapter.name: VariantUnwrapAdapter,
}


def select_adapter(binding: str) -> ValueAdapter:
    """Return the adapter registered for *binding* ('pywin32' or 'variant')."""
    try:
        adapter = _ADAPTERS[binding.lower()]()
    except KeyError:
        raise ValueError(
            f"Unknown binding {binding!r}, expected one of {sorted(_ADAPTERS)}"
        ) from None
    logger.debug("Using %s value adapter", adapter.name)
    return adapter
