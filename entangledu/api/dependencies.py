from __future__ import annotations

from typing import Annotated

from fastapi import Depends, Request

from entangledu.services.issuer_service import IssuerService


def get_issuer(request: Request) -> IssuerService:
    """The issuer instance wired into this app by ``create_app``."""
    return request.app.state.issuer


Issuer = Annotated[IssuerService, Depends(get_issuer)]
