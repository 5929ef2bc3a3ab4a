"""
Response envelope shared by every iSolarCloud gateway endpoint.

All endpoints answer with ``{result_code, result_msg, result_data}``;
``result_code == "1"`` denotes success.
"""

from dataclasses import dataclass
from typing import Any, Optional

SUCCESS_CODE = "1"


@dataclass
class ApiResponse:
    """
    Decoded gateway response envelope.

    Attributes:
        result_code: Gateway result code ("1" on success)
        result_msg: Human-readable result message
        result_data: Endpoint-specific payload
        req_serial_num: Request serial number, when the gateway sends one
    """

    result_code: str
    result_msg: str
    result_data: Any = None
    req_serial_num: Optional[str] = None

    @property
    def ok(self) -> bool:
        """True when the gateway reported success."""
        return self.result_code == SUCCESS_CODE

    @classmethod
    def from_json(cls, payload: Any) -> "ApiResponse":
        """
        Decode an envelope from a parsed JSON body.

        Raises:
            ValueError: If the body is not an envelope
        """
        if not isinstance(payload, dict) or "result_code" not in payload:
            raise ValueError("response is not a result envelope")

        return cls(
            result_code=str(payload["result_code"]),
            result_msg=str(payload.get("result_msg") or ""),
            result_data=payload.get("result_data"),
            req_serial_num=payload.get("req_serial_num"),
        )
