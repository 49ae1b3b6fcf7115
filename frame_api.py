"""On-Chain Cow Farcaster Frame.

This module exposes a FastAPI application that serves a Farcaster Frame and
mints an "On-Chain Cow" NFT to whoever clicks its button. There is no database
or background work: each click hits Neynar and Syndicate directly.

Key features
------------
- Endpoint: /api/on-chain-cow-farcaster-frame (any method)
- GET (or any non-POST): static Frame HTML with the neutral cow and a mint button
- POST (Frame button click): FID -> verified address (Neynar) -> mint(address to)
  through Syndicate's transaction relay -> Frame HTML with the happy cow
- Any failure while handling a click is returned as ``500 Error: <message>``

Environment variables --------------------------------------------------------
- SYNDICATE_API_KEY: API key of the Syndicate project. Required on every click;
  found in the Syndicate project settings under "API Keys".
- NEYNAR_API_KEY: API key for Neynar. Without it addresses cannot be extracted
  from FIDs and cows are minted to the zero address.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

import httpx
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import HTMLResponse, PlainTextResponse, Response
from pydantic import BaseModel

from frame_content import ZERO_ADDRESS, extract_verified_address, render_frame_html

logger = logging.getLogger(__name__)
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[logging.StreamHandler()]
)


# --------------------------------------------------------------------------- #
# Configuration
# --------------------------------------------------------------------------- #


class FrameConfig:
    """Runtime configuration (adjust values to suit deployment needs)."""

    API_TITLE = "On-Chain Cow Farcaster Frame"
    API_VERSION = "1.0.0"

    SITE_URL = "https://on-chain-cow-farcaster-frame.vercel.app"
    FRAME_PATH = "/api/on-chain-cow-farcaster-frame"
    FRAME_TITLE = "On-Chain Cow!"
    NEUTRAL_IMAGE_URL = f"{SITE_URL}/img/on-chain-cow-neutral-cow.png"
    HAPPY_IMAGE_URL = f"{SITE_URL}/img/on-chain-cow-happy-cow.png"
    MINT_BUTTON_TEXT = "How many On-Chain Cows can you mint?"
    MINT_MORE_BUTTON_TEXT = "Grow your on-chain pasture! Mint MORE COWS!"

    SYNDICATE_API_BASE = "https://api.syndicate.io"
    SYNDICATE_PROJECT_ID = "abcab73a-55d2-4441-a93e-edf95d183b34"
    COW_CONTRACT_ADDRESS = "0xb9be2ea4140b3e471fca66536feeb32bc7121aef9b4c4c5242ef22b07c617c6d"
    COW_CHAIN_ID = 84532  # Base Sepolia
    MINT_FUNCTION_SIGNATURE = "mint(address to)"

    NEYNAR_API_BASE = "https://api.neynar.com/v2"

    TIMEOUT_SECONDS: Optional[float] = None  # no timeout on outbound calls

    @classmethod
    def post_url(cls) -> str:
        return f"{cls.SITE_URL}{cls.FRAME_PATH}"




class SyndicateApiKeyMissing(Exception):
    """Raised when SYNDICATE_API_KEY is absent at the time a mint is attempted."""


class SyndicateRelayError(Exception):
    """Syndicate could not be reached or rejected the transaction."""


def syndicate_api_key() -> str:
    """Token provider for Syndicate, re-read from the environment on every call."""
    api_key = os.environ.get("SYNDICATE_API_KEY")
    if api_key is None:
        raise SyndicateApiKeyMissing(
            "SYNDICATE_API_KEY is not defined in environment variables."
        )
    return api_key


@dataclass(frozen=True)
class FrameSettings:
    syndicate_api_key: str
    neynar_api_key: str


def load_settings() -> FrameSettings:
    """Read credentials for a single button click.

    Fails with SyndicateApiKeyMissing before any outbound call is made. A missing
    NEYNAR_API_KEY is sent as an empty credential.
    """

    return FrameSettings(
        syndicate_api_key=syndicate_api_key(),
        neynar_api_key=os.environ.get("NEYNAR_API_KEY") or "",
    )


# --------------------------------------------------------------------------- #
# Pydantic models for Frame actions and relay responses
# --------------------------------------------------------------------------- #


class CastId(BaseModel):
    fid: int
    hash: str


class UntrustedData(BaseModel):
    # pydantic coerces "1" and 1.0 to 1; anything not integral fails the click with a 500.
    fid: int
    url: Optional[str] = None
    messageHash: Optional[str] = None
    timestamp: Optional[int] = None
    network: Optional[int] = None
    buttonIndex: Optional[int] = None
    castId: Optional[CastId] = None


class TrustedData(BaseModel):
    messageBytes: str


class FrameActionPayload(BaseModel):
    """Body Farcaster clients POST when a Frame button is clicked."""

    untrustedData: UntrustedData
    trustedData: Optional[TrustedData] = None


class TransactionResult(BaseModel):
    transactionId: str


# --------------------------------------------------------------------------- #
# Neynar client (FID -> verified address)
# --------------------------------------------------------------------------- #


class NeynarClient:
    """Looks up a Farcaster user's verified address through Neynar's bulk user API.

    A fresh ``httpx.AsyncClient`` is opened per lookup: serverless invocations may
    each run on their own event loop, and pooled connections cannot cross loops.
    """

    def __init__(
        self,
        *,
        base_url: str,
        timeout: Optional[float],
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._base_url = base_url
        self._timeout = timeout
        self._transport = transport

    def _http_client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self._base_url,
            timeout=self._timeout,
            transport=self._transport,
        )

    async def lookup_address(self, fid: int, api_key: str = "") -> str:
        """Return the user's first verified address, or ZERO_ADDRESS.

        Lookup failures of any kind fall back to ZERO_ADDRESS instead of raising.
        """

        logger.info("Extracting address for FID: %s", fid)
        try:
            async with self._http_client() as client:
                response = await client.get(
                    "/farcaster/user/bulk",
                    params={"fids": fid},
                    headers={"accept": "application/json", "api_key": api_key},
                )
            logger.info("Neynar response status=%s", response.status_code)
            response.raise_for_status()
            payload = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning("Neynar lookup failed fid=%s error=%s", fid, exc)
            return ZERO_ADDRESS

        address = extract_verified_address(payload)
        if not address:
            logger.warning("Could not fetch user address from Neynar API for FID: %s", fid)
            return ZERO_ADDRESS

        logger.info("User address from Neynar API: %s", address)
        return address


# --------------------------------------------------------------------------- #
# Syndicate client (transaction relay)
# --------------------------------------------------------------------------- #


class SyndicateClient:
    """Thin async client for Syndicate's sendTransaction endpoint."""

    def __init__(
        self,
        token: Callable[[], str],
        *,
        base_url: str,
        timeout: Optional[float],
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._token = token
        self._base_url = base_url
        self._timeout = timeout
        self._transport = transport

    def _http_client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self._base_url,
            timeout=self._timeout,
            transport=self._transport,
        )

    async def send_transaction(
        self,
        *,
        project_id: str,
        contract_address: str,
        chain_id: int,
        function_signature: str,
        args: Dict[str, Any],
        token: Optional[str] = None,
    ) -> TransactionResult:
        # Token is resolved before any I/O.
        bearer = token if token is not None else self._token()

        body = {
            "projectId": project_id,
            "contractAddress": contract_address,
            "chainId": chain_id,
            "functionSignature": function_signature,
            "args": args,
        }
        try:
            async with self._http_client() as client:
                response = await client.post(
                    "/transact/sendTransaction",
                    json=body,
                    headers={"Authorization": f"Bearer {bearer}"},
                )
            response.raise_for_status()
            return TransactionResult(**response.json())
        except httpx.HTTPStatusError as exc:
            raise SyndicateRelayError(
                f"Syndicate returned {exc.response.status_code}: {exc.response.text}"
            ) from exc
        except httpx.HTTPError as exc:
            raise SyndicateRelayError(f"Syndicate request failed: {exc}") from exc
        except (TypeError, ValueError) as exc:
            raise SyndicateRelayError(f"Unexpected Syndicate response: {exc}") from exc


# --------------------------------------------------------------------------- #
# FastAPI application setup
# --------------------------------------------------------------------------- #


app = FastAPI(
    title=FrameConfig.API_TITLE,
    version=FrameConfig.API_VERSION,
    description="Farcaster Frame that mints On-Chain Cow NFTs through Syndicate",
    docs_url="/api/docs",
    redoc_url="/api/redoc",
    openapi_url="/api/openapi.json",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


neynar_client: Optional[NeynarClient] = None
syndicate_client: Optional[SyndicateClient] = None


def build_clients() -> None:
    """Create the outbound clients if startup has not done so already."""
    global neynar_client, syndicate_client
    if neynar_client is None:
        neynar_client = NeynarClient(
            base_url=FrameConfig.NEYNAR_API_BASE,
            timeout=FrameConfig.TIMEOUT_SECONDS,
        )
    if syndicate_client is None:
        syndicate_client = SyndicateClient(
            token=syndicate_api_key,
            base_url=FrameConfig.SYNDICATE_API_BASE,
            timeout=FrameConfig.TIMEOUT_SECONDS,
        )


@app.on_event("startup")
async def startup_event() -> None:
    build_clients()
    logger.info("Startup complete. Neynar and Syndicate clients ready.")


def initial_frame_html() -> str:
    return render_frame_html(
        title=FrameConfig.FRAME_TITLE,
        image_url=FrameConfig.NEUTRAL_IMAGE_URL,
        button_text=FrameConfig.MINT_BUTTON_TEXT,
        post_url=FrameConfig.post_url(),
    )


def minted_frame_html() -> str:
    return render_frame_html(
        title=FrameConfig.FRAME_TITLE,
        image_url=FrameConfig.HAPPY_IMAGE_URL,
        button_text=FrameConfig.MINT_MORE_BUTTON_TEXT,
        post_url=FrameConfig.post_url(),
    )


async def mint_cow_for_fid(fid: int, settings: FrameSettings) -> TransactionResult:
    """Resolve ``fid`` to an address and mint one cow to it."""
    build_clients()
    if neynar_client is None or syndicate_client is None:
        raise RuntimeError("clients not initialised")

    address = await neynar_client.lookup_address(fid, api_key=settings.neynar_api_key)
    logger.info("Extracted address from FID passed to Syndicate: %s", address)

    # The contract mints exactly one cow per call, so "to" is the only argument.
    return await syndicate_client.send_transaction(
        project_id=FrameConfig.SYNDICATE_PROJECT_ID,
        contract_address=FrameConfig.COW_CONTRACT_ADDRESS,
        chain_id=FrameConfig.COW_CHAIN_ID,
        function_signature=FrameConfig.MINT_FUNCTION_SIGNATURE,
        args={"to": address},
        token=settings.syndicate_api_key,
    )


# --------------------------------------------------------------------------- #
# Routes
# --------------------------------------------------------------------------- #


@app.get("/", tags=["System"])
async def root() -> Dict[str, str]:
    return {"service": FrameConfig.API_TITLE, "version": FrameConfig.API_VERSION}


async def on_chain_cow_frame(request: Request) -> Response:
    # Farcaster clients POST here when the button is clicked. Anything else is
    # a crawler or browser asking for the Frame itself.
    if request.method != "POST":
        return HTMLResponse(content=initial_frame_html())

    # Frame signatures are not verified; no funds or private data are involved.
    try:
        settings = load_settings()
        body = await request.json()
        logger.info("req.body %s", body)
        action = FrameActionPayload(**body)
        fid = action.untrustedData.fid

        mint_tx = await mint_cow_for_fid(fid, settings)
        logger.info("Syndicate Transaction ID: %s", mint_tx.transactionId)
    except Exception as exc:
        logger.exception("Frame click failed")
        return PlainTextResponse(content=f"Error: {exc}", status_code=500)

    return HTMLResponse(content=minted_frame_html())


# Registered as a plain Starlette route with no method list so every verb,
# including TRACE and nonstandard ones, reaches the handler.
app.add_route(FrameConfig.FRAME_PATH, on_chain_cow_frame, include_in_schema=False)


# --------------------------------------------------------------------------- #
# Application entrypoint for local development
# --------------------------------------------------------------------------- #


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "frame_api:app",
        host="0.0.0.0",
        port=8000,
        log_level="info",
        reload=False,
    )
