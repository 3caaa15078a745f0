"""CredentialModalFlow: the one password dialog shared by every credential action.

Each open() discards the previous SubmitBinding and builds a new one with a
fresh generation number, so at most one binding can ever submit. A request
that completes after its binding was superseded leaves the dialog alone but
still runs its data continuation, keeping views in step with the server.
"""

from __future__ import annotations

import inspect
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional, Union

from whawty_console.advisor import PasswordAdvisor, stars, tips
from whawty_console.audit_log import AuditLog
from whawty_console.dispatcher import ApiResult, RequestDispatcher
from whawty_console.errors import ValidationFailure
from whawty_console.forms import PasswordForm, passwords_match
from whawty_console.models import PasswordVerdict, Purpose

SuccessHandler = Callable[[Any], Union[None, Awaitable[None]]]


@dataclass(frozen=True)
class SubmitBinding:
    generation: int
    purpose: Purpose
    target: str
    is_admin: Optional[bool] = None
    on_success: Optional[SuccessHandler] = None

    @property
    def endpoint(self) -> str:
        return "add" if self.purpose is Purpose.ADMIN_CREATE else "update"

    def payload(self, password: str) -> dict:
        if self.purpose is Purpose.ADMIN_CREATE:
            return {"username": self.target, "password": password, "admin": bool(self.is_admin)}
        return {"username": self.target, "newpassword": password}


class CredentialModalFlow:
    def __init__(
        self,
        dispatcher: RequestDispatcher,
        advisor: Optional[PasswordAdvisor] = None,
        audit_log: Optional[AuditLog] = None,
    ):
        self._dispatcher = dispatcher
        self._advisor = advisor or PasswordAdvisor()
        self._audit = audit_log or AuditLog()
        self.form = PasswordForm()
        self.verdict = PasswordVerdict(score=0)
        self._binding: Optional[SubmitBinding] = None
        self._generation = 0
        self._in_flight = False

    @property
    def is_open(self) -> bool:
        return self._binding is not None

    @property
    def binding(self) -> Optional[SubmitBinding]:
        return self._binding

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def submit_label(self) -> str:
        return self._binding.purpose.submit_label if self._binding else ""

    def open(
        self,
        purpose: Purpose,
        target_username: str,
        *,
        is_admin: Optional[bool] = None,
        on_success: Optional[SuccessHandler] = None,
    ) -> SubmitBinding:
        # Teardown must come first: a stale binding may never survive an open()
        self._teardown()
        self.form.reset()
        self.verdict = PasswordVerdict(score=0)

        if not target_username:
            raise ValidationFailure("empty username is not allowed")
        if purpose is Purpose.ADMIN_CREATE and is_admin is None:
            raise ValueError("ADMIN_CREATE needs is_admin")

        self._generation += 1
        self._binding = SubmitBinding(
            generation=self._generation,
            purpose=purpose,
            target=target_username,
            is_admin=is_admin,
            on_success=on_success,
        )
        self._in_flight = False
        self._refresh_strength()
        self._audit.log("modal_open", username=target_username, detail=purpose.value)
        return self._binding

    def close(self) -> None:
        self._teardown()
        self.form.reset()
        self.verdict = PasswordVerdict(score=0)

    def _teardown(self) -> None:
        self._binding = None
        self.form.submit_enabled = False

    # ── Field edits ───────────────────────────────────────────────────────

    def set_password(self, text: str) -> None:
        self.form.password = text
        self._compare()
        self._refresh_strength()

    def set_retype(self, text: str) -> None:
        self.form.retype = text
        self._compare()

    def _compare(self) -> None:
        self.form.compare()
        if self._binding is None or self._in_flight:
            self.form.submit_enabled = False

    def _refresh_strength(self) -> None:
        target = self._binding.target if self._binding else ""
        password = self.form.password
        self.verdict = self._advisor.advise(password, self._advisor.context_for(target))
        self.form.stars = stars(self.verdict.score)
        self.form.crack_time = self.verdict.crack_time
        self.form.tips = tips(password, self.verdict)

    # ── Submit ────────────────────────────────────────────────────────────

    async def submit(self) -> ApiResult:
        binding = self._binding
        if binding is None:
            raise ValidationFailure("no password dialog is open")
        if self._in_flight:
            raise ValidationFailure("a request for this dialog is already pending")
        if not passwords_match(self.form.password, self.form.retype):
            self.form.submit_enabled = False
            raise ValidationFailure("passwords are empty or do not match")

        payload = binding.payload(self.form.password)
        self._in_flight = True
        self.form.submit_enabled = False
        self._audit.log("modal_submit", endpoint=binding.endpoint, username=binding.target,
                        detail=binding.purpose.value)
        try:
            result = await self._dispatcher.call(binding.endpoint, payload)
        finally:
            if self._binding is binding:
                self._in_flight = False

        current = self._binding is binding and binding.generation == self._generation
        if not result.ok:
            if current:
                self._compare()
            return result

        if current:
            self.close()
        else:
            self._audit.log("stale_completion", endpoint=binding.endpoint, username=binding.target,
                            detail=f"generation {binding.generation} < {self._generation}")
        if binding.on_success is not None:
            outcome = binding.on_success(result.data)
            if inspect.isawaitable(outcome):
                await outcome
        return result
