"""Crestron Home integration.

Provides:
- CrestronClient for API communication
- Device models and collections
- Topology index and device matcher
- Reconciliation cache with auth-expiry recovery
- Thermostat pairing coordinator
"""

from tutera.services.crestron.cache import CacheReconciler, DeviceCache
from tutera.services.crestron.client import (
    AuthProvider,
    CrestronClient,
    FetchResult,
    RemoteController,
    SetterResult,
)
from tutera.services.crestron.matcher import DeviceMatcher, MatchHints
from tutera.services.crestron.models import (
    Area,
    DeviceCollections,
    DeviceType,
    DoorLock,
    FanMode,
    Light,
    MediaProvider,
    MediaRoom,
    Room,
    Scene,
    SecurityDevice,
    Sensor,
    Shade,
    Thermostat,
    ThermostatMode,
    ThermostatPair,
)
from tutera.services.crestron.pairing import ThermostatPairingCoordinator
from tutera.services.crestron.topology import TopologyIndex, fuzzy_match

__all__ = [
    "Area",
    "AuthProvider",
    "CacheReconciler",
    "CrestronClient",
    "DeviceCache",
    "DeviceCollections",
    "DeviceMatcher",
    "DeviceType",
    "DoorLock",
    "FanMode",
    "FetchResult",
    "Light",
    "MatchHints",
    "MediaProvider",
    "MediaRoom",
    "RemoteController",
    "Room",
    "Scene",
    "SecurityDevice",
    "Sensor",
    "SetterResult",
    "Shade",
    "Thermostat",
    "ThermostatMode",
    "ThermostatPair",
    "ThermostatPairingCoordinator",
    "TopologyIndex",
    "fuzzy_match",
]
