def test_import_field():
    from vireax.field import (  # noqa: F401
        InMemoryPacketStore,
        InfoPacket,
        MetricsEngine,
        OperatorPipeline,
        QueryEngine,
    )


def test_import_runtime():
    from vireax.runtime import FieldKernel, GeminiClient, KernelConfig, KernelDriver  # noqa: F401


def test_import_logging():
    from vireax.logging import log_health  # noqa: F401
