from .readiness import ReadinessGate, marker_predicate
from .process_manager import (
    ProcessSupervisor,
    ServerProcess,
    StreamHandle,
    build_restream_command,
)
