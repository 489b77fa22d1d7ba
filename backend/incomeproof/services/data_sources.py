"""
Data Source Contracts

The witness builder reads five independent views of a user. Each source
exposes one async read method returning a plain record, and may:
- raise DataSourceNotLinkedError when the user never linked it
- raise DataSourceUnavailableError when it cannot be reached

Adapters:
- AggregatorClient: bank-data aggregation service over HTTP (income,
  assets, liabilities, credit signal)
- DatabaseIdentitySource: latest identity-verification result stored by
  the provider webhook
"""
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional, Protocol

import httpx
from sqlalchemy.orm import Session

from ..config import DataSourceSettings
from ..errors import DataSourceNotLinkedError, DataSourceUnavailableError
from ..models.db_models import IdentityVerificationDB

logger = logging.getLogger(__name__)


# =============================================================================
# RECORDS
# =============================================================================

@dataclass(frozen=True)
class IncomeData:
    monthly_income: float
    employment_months: int
    employer_name: str  # Hashed by the builder; never stored in a witness


@dataclass(frozen=True)
class AssetsData:
    total_assets: float


@dataclass(frozen=True)
class LiabilitiesData:
    total_liabilities: float


@dataclass(frozen=True)
class SignalData:
    credit_score: float


@dataclass(frozen=True)
class VerificationStatus:
    """None means the provider has not confirmed that sub-check yet."""
    ssn_verified: Optional[bool] = None
    selfie_verified: Optional[bool] = None
    document_verified: Optional[bool] = None


# =============================================================================
# CONTRACTS
# =============================================================================

class IncomeSource(Protocol):
    async def get_income(self, user_id: str) -> IncomeData: ...


class AssetsSource(Protocol):
    async def get_assets(self, user_id: str) -> AssetsData: ...


class LiabilitiesSource(Protocol):
    async def get_liabilities(self, user_id: str) -> LiabilitiesData: ...


class SignalSource(Protocol):
    async def get_signal(self, user_id: str) -> SignalData: ...


class IdentitySource(Protocol):
    async def get_verification_status(self, user_id: str) -> Optional[VerificationStatus]: ...


# =============================================================================
# ADAPTERS
# =============================================================================

class AggregatorClient:
    """
    HTTP client for the bank-data aggregation service.

    Implements IncomeSource, AssetsSource, LiabilitiesSource and SignalSource.
    GET /users/{user_id}/{view}; 404 means the user has no linked account.
    """

    def __init__(self, settings: DataSourceSettings, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.settings = settings
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            headers = {"Accept": "application/json"}
            if self.settings.api_key:
                headers["Authorization"] = f"Bearer {self.settings.api_key}"
            self._client = httpx.AsyncClient(
                base_url=self.settings.aggregator_url,
                headers=headers,
                timeout=self.settings.timeout,
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    async def _fetch(self, user_id: str, view: str) -> Dict[str, Any]:
        try:
            response = await self._get_client().get(f"/users/{user_id}/{view}")
        except httpx.HTTPError as e:
            logger.error(f"Aggregator {view} request failed: {e}")
            raise DataSourceUnavailableError(view, f"Could not reach {view} source: {e}")

        if response.status_code == 404:
            raise DataSourceNotLinkedError(view)
        if response.status_code >= 400:
            raise DataSourceUnavailableError(view, f"{view} source returned status {response.status_code}")
        try:
            body = response.json()
        except ValueError:
            raise DataSourceUnavailableError(view, f"{view} source returned a non-JSON body")
        if not isinstance(body, dict):
            raise DataSourceUnavailableError(view, f"{view} source returned an unexpected body")
        return body

    async def get_income(self, user_id: str) -> IncomeData:
        body = await self._fetch(user_id, "income")
        try:
            return IncomeData(
                monthly_income=float(body["monthlyIncome"]),
                employment_months=int(body["employmentMonths"]),
                employer_name=str(body.get("employerName") or "Unknown"),
            )
        except (KeyError, TypeError, ValueError):
            raise DataSourceUnavailableError("income", "income source returned an unexpected body")

    async def get_assets(self, user_id: str) -> AssetsData:
        body = await self._fetch(user_id, "assets")
        try:
            return AssetsData(total_assets=float(body["totalAssets"]))
        except (KeyError, TypeError, ValueError):
            raise DataSourceUnavailableError("assets", "assets source returned an unexpected body")

    async def get_liabilities(self, user_id: str) -> LiabilitiesData:
        body = await self._fetch(user_id, "liabilities")
        try:
            return LiabilitiesData(total_liabilities=float(body["totalLiabilities"]))
        except (KeyError, TypeError, ValueError):
            raise DataSourceUnavailableError("liabilities", "liabilities source returned an unexpected body")

    async def get_signal(self, user_id: str) -> SignalData:
        body = await self._fetch(user_id, "signal")
        try:
            return SignalData(credit_score=float(body["creditScore"]))
        except (KeyError, TypeError, ValueError):
            raise DataSourceUnavailableError("signal", "signal source returned an unexpected body")


class DatabaseIdentitySource:
    """Reads the most recent identity-verification result for a user."""

    def __init__(self, db: Session):
        self.db = db

    async def get_verification_status(self, user_id: str) -> Optional[VerificationStatus]:
        row = (
            self.db.query(IdentityVerificationDB)
            .filter(IdentityVerificationDB.user_id == user_id)
            .order_by(IdentityVerificationDB.created_at.desc())
            .first()
        )
        if row is None:
            return None
        return VerificationStatus(
            ssn_verified=row.ssn_verified,
            selfie_verified=row.selfie_verified,
            document_verified=row.document_verified,
        )
