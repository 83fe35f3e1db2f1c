"""pyATVBridge - keep smart-home accessories in sync with media players."""

__version__ = "0.1.0"

from pyATVBridge.enums import (  # noqa: F401 – re-export for convenience
    CharacteristicType,
    DeviceState,
    PowerState,
    SensorProperty,
    ServiceType,
)

from pyATVBridge.device import (  # noqa: F401
    POWER_STATE_EVENT,
    DeviceEvent,
    DeviceHandle,
    DeviceSettings,
    MediaPlayerDevice,
    event_name,
)

from pyATVBridge.debounce import DebounceGate, GateState  # noqa: F401

from pyATVBridge.topology import SensorGroup, build_topology  # noqa: F401

from pyATVBridge.accessory import (  # noqa: F401
    Accessory,
    Characteristic,
    Service,
)

from pyATVBridge.reconciler import (  # noqa: F401
    DEFAULT_SERIAL_NUMBER,
    ReconciledServices,
    ServiceReconciler,
)

from pyATVBridge.router import EventRouter  # noqa: F401

from pyATVBridge.media_player import MediaPlayerAccessory  # noqa: F401

from pyATVBridge.config import (  # noqa: F401
    BridgeConfig,
    DeviceConfig,
    load_config,
)

from pyATVBridge.persistence import AccessoryStore  # noqa: F401

from pyATVBridge.bridge import (  # noqa: F401
    AUTO_SAVE_DELAY,
    AccessoryBridge,
    accessory_uuid,
)
