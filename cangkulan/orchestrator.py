"""
Protocol orchestrator: the reference driver for one game's on-chain steps.

Each game-affecting action runs as

    build + simulate (ContractClient) -> [coordinate auth] -> submit -> await finality

Two-party start
---------------
``start_game`` needs both players' authorization. The flow spans both
machines:

1. player 1: ``prepare_start_game(...)`` -> base64 signed auth entry
   (sent to player 2 out of band);
2. player 2: ``import_and_sign_start_game(entry, ...)`` -> base64 envelope
   with both auth entries in place and the nonce footprint repaired;
3. player 2 (source account): ``finalize_start_game(envelope, signer)``.

When both signers are at hand, ``start_game_direct`` signs player 1's entry
against the same simulation it sends, so the nonces already agree.

Single-player actions (``commit_seed``, ``reveal_seed``, ``commit_play``,
``reveal_play``) go through ``submit`` with the configured retry policy. A
contract rejection caused by the other player writing the game record at the
same moment (``is_contention_error``) rebuilds the action from a fresh
simulation a bounded number of times; ``commit_play`` re-reads the game's
``action_nonce`` first. Game reads are de-duplicated through the instance's
``RequestCache``.
"""

from __future__ import annotations

import asyncio
import random
import secrets
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Mapping, Optional, Set, Union

from cangkulan.auth.coordinator import coordinate, prepare_party_a_entry
from cangkulan.auth.entry import describe_entry
from cangkulan.cache import RequestCache, create_cache_key
from cangkulan.commit_reveal.pedersen import PROOF_SIZE, SeedReveal
from cangkulan.commit_reveal.play import DECK_SIZE, CANNOT_FOLLOW, SALT_SIZE
from cangkulan.config import CoreConfig
from cangkulan.contract import AssembledTransaction, ContractClient, ContractRpc
from cangkulan.errors import MalformedEntry, ProtocolError, RetryExhausted
from cangkulan.logging import get_logger
from cangkulan.tx.classify import error_message, is_contention_error
from cangkulan.tx.retry import aretry_call
from cangkulan.tx.send import SentTransaction
from cangkulan.tx.submit import submit
from cangkulan.types.auth import AuthorizationEntry
from cangkulan.utils.bytes import U32_MAX

__all__ = ["StartGameRequest", "GameProtocol"]

log = get_logger(__name__)

GAME_CACHE_TTL = 5.0
HASH_SIZE = 32


@dataclass(frozen=True)
class StartGameRequest:
    """What player 2 learns from player 1's signed ``start_game`` entry."""

    session_id: int
    player1: str
    player1_points: int
    nonce: int


def _check_u32(name: str, value: int) -> int:
    if not isinstance(value, int) or isinstance(value, bool) or not 0 <= value <= U32_MAX:
        raise ValueError(f"{name} must be a u32, got {value!r}")
    return value


def _action_nonce(game: Any) -> Optional[int]:
    value = game.get("action_nonce") if isinstance(game, Mapping) else getattr(game, "action_nonce", None)
    return None if value is None else int(value)


def _check_hash(name: str, value: bytes, size: int = HASH_SIZE) -> bytes:
    value = bytes(value)
    if len(value) != size:
        raise ValueError(f"{name} must be {size} bytes, got {len(value)}")
    return value


class GameProtocol:
    """
    Drives the contract calls of a game session.

    Parameters
    ----------
    client : ``ContractClient`` bound to the game contract.
    config : ``CoreConfig`` supplying TTLs and the retry budget.
    cache : optional ``RequestCache``; a private one is created otherwise.
    """

    def __init__(
        self,
        client: ContractClient,
        config: Optional[CoreConfig] = None,
        *,
        cache: Optional[RequestCache] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        rng: Callable[[], float] = random.random,
    ) -> None:
        self.client = client
        self.config = config or CoreConfig()
        self.cache = cache if cache is not None else RequestCache()
        self._sleep = sleep
        self._rng = rng
        self._issued_sessions: Set[int] = set()

    @classmethod
    def from_config(cls, config: CoreConfig, rpc: ContractRpc, **kwargs: Any) -> "GameProtocol":
        if not config.contract_id:
            raise ValueError("config.contract_id is required")
        client = ContractClient(
            config.contract_id,
            rpc,
            config.network_passphrase,
            finality_timeout=config.finality_timeout,
            poll_interval=config.poll_interval,
        )
        return cls(client, config, **kwargs)

    # ------------------------------------------------------------------ helpers

    def new_session_id(self) -> int:
        """Random non-zero u32 not yet issued by this instance."""
        while True:
            sid = secrets.randbelow(U32_MAX) + 1
            if sid not in self._issued_sessions:
                self._issued_sessions.add(sid)
                return sid

    async def _submit(self, method: str, args: list, *, source: str, signer: Any) -> SentTransaction:
        async def build_and_simulate() -> AssembledTransaction:
            return await self.client.build(method, args, source=source, signer=signer)

        return await self._submit_pending(build_and_simulate, label=method, session_id=args[0])

    async def _submit_pending(
        self,
        build_and_simulate: Callable[[], Awaitable[AssembledTransaction]],
        *,
        label: str,
        session_id: int,
    ) -> SentTransaction:
        sent = await submit(
            build_and_simulate,
            self.config.retry_policy(),
            attempt_timeout=self.config.timeout,
            sleep=self._sleep,
            rng=self._rng,
            label=label,
        )
        self.cache.invalidate(create_cache_key("game", session_id))
        log.info("action_submitted", action=label, session_id=session_id, tx_hash=sent.tx_hash)
        return sent

    async def _with_contention_retry(
        self,
        action: Callable[[int], Awaitable[SentTransaction]],
        *,
        label: str,
        session_id: int,
    ) -> SentTransaction:
        """
        Run ``action(rebuild)`` and run it again (``rebuild`` = 1, 2, ...) while
        it fails with a contention error. When the budget runs out the last
        ``ContractRejection`` is raised as is.
        """
        rebuilds = 0

        async def _attempt() -> SentTransaction:
            nonlocal rebuilds
            n = rebuilds
            rebuilds += 1
            return await action(n)

        def _on_retry(attempt: int, exc: BaseException, sleep_s: float) -> None:
            self.cache.invalidate(create_cache_key("game", session_id))
            log.warning(
                "contention_retry",
                action=label,
                session_id=session_id,
                attempt=attempt,
                sleep_s=round(sleep_s, 3),
                error=error_message(exc),
            )

        try:
            return await aretry_call(
                _attempt,
                policy=self.config.contention_policy(),
                retry_if=is_contention_error,
                on_retry=_on_retry,
                sleep=self._sleep,
                rng=self._rng,
            )
        except RetryExhausted as exc:
            if is_contention_error(exc.last_error):
                raise exc.last_error from exc
            raise

    # ------------------------------------------------------------------ start_game

    async def prepare_start_game(
        self,
        session_id: int,
        player1: str,
        player2: str,
        player1_points: int,
        player2_points: int,
        player1_signer: Any,
        *,
        ttl_minutes: Optional[float] = None,
    ) -> str:
        """
        Player 1's half. Simulates ``start_game`` with player 2 as the source
        and returns player 1's signed auth entry as base64.
        """
        _check_u32("session_id", session_id)
        if player1 == player2:
            raise ProtocolError("Cannot play against yourself.")
        tx = await self.client.build(
            "start_game",
            [session_id, player1, player2, int(player1_points), int(player2_points)],
            source=player2,
        )
        return await prepare_party_a_entry(
            tx,
            player1,
            player1_signer,
            ledger=self.client.rpc,
            ttl_minutes=ttl_minutes or self.config.multi_sig_auth_ttl_minutes,
            ledger_close_seconds=self.config.ledger_close_seconds,
        )

    def parse_start_game_entry(self, entry: Union[AuthorizationEntry, bytes, str]) -> StartGameRequest:
        info = describe_entry(entry)
        if info.function_name != "start_game":
            raise MalformedEntry(f"unexpected function: {info.function_name}")
        if len(info.args) != 2:
            raise MalformedEntry(f"expected 2 arguments, got {len(info.args)}")
        if info.address is None or info.nonce is None:
            raise MalformedEntry("start_game entry must carry an address credential")
        if not info.signed:
            raise MalformedEntry("start_game entry is not signed")
        try:
            session_id = _check_u32("session_id", info.args[0])
            points = int(info.args[1])
        except (TypeError, ValueError) as e:
            raise MalformedEntry(f"bad start_game arguments: {e}") from e
        return StartGameRequest(
            session_id=session_id,
            player1=info.address,
            player1_points=points,
            nonce=info.nonce,
        )

    async def import_and_sign_start_game(
        self,
        player1_entry: Union[AuthorizationEntry, bytes, str],
        player2: str,
        player2_points: int,
        player2_signer: Any,
        *,
        ttl_minutes: Optional[float] = None,
    ) -> str:
        """
        Player 2's half. Re-simulates ``start_game`` as the source account,
        splices in player 1's entry, signs player 2's own entry if one exists
        and returns the envelope as base64.
        """
        req = self.parse_start_game_entry(player1_entry)
        if player2 == req.player1:
            raise ProtocolError("Cannot play against yourself.")
        tx = await self.client.build(
            "start_game",
            [req.session_id, req.player1, player2, req.player1_points, int(player2_points)],
            source=player2,
            signer=player2_signer,
        )
        await coordinate(
            tx,
            player1_entry,
            player2,
            player2_signer,
            ledger=self.client.rpc,
            ttl_minutes=ttl_minutes or self.config.multi_sig_auth_ttl_minutes,
            ledger_close_seconds=self.config.ledger_close_seconds,
        )
        log.info("start_game_coordinated", session_id=req.session_id, player1=req.player1, player2=player2)
        return tx.to_base64()

    async def finalize_start_game(self, envelope: Union[str, bytes], signer: Any) -> SentTransaction:
        """Sign the coordinated envelope as its source account, send and await finality."""
        tx = self.client.from_envelope(envelope, signer=signer)
        if tx.needs_signatures_from():
            raise ProtocolError(f"unsigned auth entries remain for {tx.needs_signatures_from()}")
        session_id = tx.built.invoke.args[0] if tx.built.invoke.args else 0

        # The envelope is already simulated and signed by both parties; every
        # attempt re-sends it as is.
        async def same_envelope() -> AssembledTransaction:
            return tx

        return await self._submit_pending(same_envelope, label="start_game", session_id=session_id)

    async def start_game_direct(
        self,
        session_id: int,
        player1: str,
        player2: str,
        player1_points: int,
        player2_points: int,
        player1_signer: Any,
        player2_signer: Any,
        *,
        ttl_minutes: Optional[float] = None,
    ) -> SentTransaction:
        """
        Both players' signers in one process (dev and quickstart setups).

        Player 2 is the source account; player 1's entry is signed against the
        very simulation that gets sent, so no nonce repair is needed. Every
        retry attempt simulates and signs afresh.
        """
        _check_u32("session_id", session_id)
        if player1 == player2:
            raise ProtocolError("Cannot play against yourself.")
        args = [session_id, player1, player2, int(player1_points), int(player2_points)]
        ttl = ttl_minutes or self.config.multi_sig_auth_ttl_minutes

        async def build_and_sign() -> AssembledTransaction:
            tx = await self.client.build("start_game", args, source=player2, signer=player2_signer)
            entry = await prepare_party_a_entry(
                tx,
                player1,
                player1_signer,
                ledger=self.client.rpc,
                ttl_minutes=ttl,
                ledger_close_seconds=self.config.ledger_close_seconds,
            )
            await coordinate(
                tx,
                entry,
                player2,
                player2_signer,
                ledger=self.client.rpc,
                ttl_minutes=ttl,
                ledger_close_seconds=self.config.ledger_close_seconds,
            )
            return tx

        return await self._submit_pending(build_and_sign, label="start_game", session_id=session_id)

    # ------------------------------------------------------------------ seed phase

    async def commit_seed(self, session_id: int, player: str, commit_hash: bytes, signer: Any) -> SentTransaction:
        _check_u32("session_id", session_id)
        commit_hash = _check_hash("commit_hash", commit_hash)

        async def action(_rebuild: int) -> SentTransaction:
            return await self._submit("commit_seed", [session_id, player, commit_hash], source=player, signer=signer)

        return await self._with_contention_retry(action, label="commit_seed", session_id=session_id)

    async def reveal_seed(self, session_id: int, player: str, reveal: SeedReveal, signer: Any) -> SentTransaction:
        _check_u32("session_id", session_id)
        seed_hash = _check_hash("seed_hash", reveal.seed_hash)
        proof = _check_hash("proof", reveal.proof, PROOF_SIZE)

        async def action(_rebuild: int) -> SentTransaction:
            return await self._submit(
                "reveal_seed", [session_id, player, seed_hash, proof], source=player, signer=signer
            )

        return await self._with_contention_retry(action, label="reveal_seed", session_id=session_id)

    # ------------------------------------------------------------------ play phase

    async def commit_play(
        self,
        session_id: int,
        player: str,
        commit_hash: bytes,
        expected_nonce: int,
        signer: Any,
    ) -> SentTransaction:
        """
        Commit to a play. On a contention rebuild the expected nonce is
        re-read from the game record, since the other player's action moved it.
        """
        _check_u32("session_id", session_id)
        nonce = _check_u32("expected_nonce", expected_nonce)
        commit_hash = _check_hash("commit_hash", commit_hash)

        async def action(rebuild: int) -> SentTransaction:
            nonlocal nonce
            if rebuild:
                fresh = _action_nonce(await self.get_game(session_id, viewer=player))
                if fresh is not None:
                    log.info("action_nonce_refreshed", session_id=session_id, stale=nonce, nonce=fresh)
                    nonce = fresh
            return await self._submit(
                "commit_play",
                [session_id, player, commit_hash, nonce],
                source=player,
                signer=signer,
            )

        return await self._with_contention_retry(action, label="commit_play", session_id=session_id)

    async def reveal_play(self, session_id: int, player: str, card_id: int, salt: bytes, signer: Any) -> SentTransaction:
        _check_u32("session_id", session_id)
        if card_id != CANNOT_FOLLOW and not 0 <= card_id < DECK_SIZE:
            raise ValueError(f"card_id out of range: {card_id}")
        salt = _check_hash("salt", salt, SALT_SIZE)

        async def action(_rebuild: int) -> SentTransaction:
            return await self._submit("reveal_play", [session_id, player, card_id, salt], source=player, signer=signer)

        return await self._with_contention_retry(action, label="reveal_play", session_id=session_id)

    # ------------------------------------------------------------------ reads

    async def get_game(self, session_id: int, *, viewer: str) -> Any:
        """Simulated ``get_game`` result, de-duplicated per session for a few seconds."""
        _check_u32("session_id", session_id)

        async def fetch() -> Any:
            tx = await self.client.build("get_game", [session_id], source=viewer)
            return tx.result

        return await self.cache.dedupe(create_cache_key("game", session_id), fetch, ttl=GAME_CACHE_TTL)
