"""
iSolarCloud data models.

This module defines data models for plant and device listings as returned
by the gateway's platform endpoints.
"""

from dataclasses import asdict, dataclass
from typing import Any, Dict, Optional


@dataclass
class Plant:
    """
    A solar plant (power station).

    Attributes:
        ps_id: Plant identifier
        ps_name: Plant name
        ps_type: Plant type code
        online_status: 1 when the plant is online
        grid_connection_status: Grid connection status code
        ps_fault_status: Fault status code
        ps_location: Address of the plant
        latitude: Plant latitude
        longitude: Plant longitude
        install_date: Installation date as sent by the gateway
        update_time: Last data update time
        description: Free-text description
        today_energy: Energy produced today, when included
    """

    ps_id: int
    ps_name: str
    ps_type: int = 0
    online_status: int = 0
    valid_flag: int = 0
    grid_connection_status: int = 0
    ps_fault_status: int = 0
    connect_type: int = 0
    build_status: int = 0
    ps_location: str = ""
    latitude: float = 0.0
    longitude: float = 0.0
    install_date: str = ""
    update_time: str = ""
    ps_current_time_zone: str = ""
    description: Optional[str] = None
    grid_connection_time: Optional[str] = None
    today_energy: Optional[str] = None

    @property
    def is_online(self) -> bool:
        """Check whether the plant reports as online."""
        return self.online_status == 1

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Plant":
        """
        Create Plant from a ``pageList`` entry.

        Unknown keys are ignored; missing optional keys take defaults.
        """
        return cls(
            ps_id=int(data["ps_id"]),
            ps_name=data.get("ps_name") or "",
            ps_type=int(data.get("ps_type") or 0),
            online_status=int(data.get("online_status") or 0),
            valid_flag=int(data.get("valid_flag") or 0),
            grid_connection_status=int(data.get("grid_connection_status") or 0),
            ps_fault_status=int(data.get("ps_fault_status") or 0),
            connect_type=int(data.get("connect_type") or 0),
            build_status=int(data.get("build_status") or 0),
            ps_location=data.get("ps_location") or "",
            latitude=float(data.get("latitude") or 0.0),
            longitude=float(data.get("longitude") or 0.0),
            install_date=data.get("install_date") or "",
            update_time=data.get("update_time") or "",
            ps_current_time_zone=data.get("ps_current_time_zone") or "",
            description=data.get("description"),
            grid_connection_time=data.get("grid_connection_time"),
            today_energy=data.get("today_energy"),
        )


@dataclass
class PlantDevice:
    """
    A device (inverter, battery, meter, ...) belonging to a plant.

    Attributes:
        uuid: Device identifier
        ps_key: Device key used by the real-time data endpoint
        device_sn: Serial number
        device_name: Display name
        device_type: Device type code
        type_name: Device type name
        dev_fault_status: Fault status code
        dev_status: Device status
        ps_id: Owning plant
    """

    uuid: int
    ps_key: str
    device_sn: str = ""
    device_name: str = ""
    device_type: int = 0
    type_name: str = ""
    device_model_id: int = 0
    device_model_code: str = ""
    dev_fault_status: int = 0
    dev_status: str = ""
    claim_state: int = 0
    device_code: int = 0
    chnnl_id: int = 0
    communication_dev_sn: str = ""
    ps_id: int = 0

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PlantDevice":
        """Create PlantDevice from a ``pageList`` entry."""
        return cls(
            uuid=int(data["uuid"]),
            ps_key=data.get("ps_key") or "",
            device_sn=data.get("device_sn") or "",
            device_name=data.get("device_name") or "",
            device_type=int(data.get("device_type") or 0),
            type_name=data.get("type_name") or "",
            device_model_id=int(data.get("device_model_id") or 0),
            device_model_code=data.get("device_model_code") or "",
            dev_fault_status=int(data.get("dev_fault_status") or 0),
            dev_status=str(data.get("dev_status") or ""),
            claim_state=int(data.get("claim_state") or 0),
            device_code=int(data.get("device_code") or 0),
            chnnl_id=int(data.get("chnnl_id") or 0),
            communication_dev_sn=data.get("communication_dev_sn") or "",
            ps_id=int(data.get("ps_id") or 0),
        )
