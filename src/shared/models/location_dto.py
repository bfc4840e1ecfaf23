from typing import Optional

from pydantic import Field

from src.shared.models.common import CamelModel


class LocationDTO(CamelModel):
    """Точка маршрута (адрес подачи или доставки)."""
    lat: float = Field(..., ge=-90, le=90)
    lng: float = Field(..., ge=-180, le=180)
    address: Optional[str] = None
    contact_name: Optional[str] = None
    contact_phone: Optional[str] = None
    instructions: Optional[str] = None
