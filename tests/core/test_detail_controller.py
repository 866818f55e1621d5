"""
Contract Detail Controller Tests

Load, sign and verify through fake collaborators; late responses after
close() must not change view state.
"""

import asyncio

import pytest

from contract_client.contracts.base import (
    ErrorCode, FetchFailed, SignFailed, VerificationFailed,
)
from contract_client.contracts.verification import StepStatus
from contract_client.integrity.verifier import IntegrityVerifier
from contract_client.signing.eligibility import SigningOutcome
from contract_client.state.operation import Failed, Idle, Succeeded
from contract_client.views.detail import ContractDetailController

from .fixtures import (
    BOB, MALLORY, FakeContractApi, FakeVerifyEndpoint, LogoutRecorder,
    make_clock, make_contract, make_result, settle,
)


def make_controller(user=BOB, contract=None, endpoint=None):
    api = FakeContractApi(user, contract or make_contract())
    endpoint = endpoint or FakeVerifyEndpoint()
    on_update = LogoutRecorder()
    controller = ContractDetailController(
        api, IntegrityVerifier(endpoint, clock=make_clock()), on_update
    )
    return controller, api, endpoint, on_update


class TestOpen:

    @pytest.mark.asyncio
    async def test_open_decides_eligibility(self):
        controller, _, _, _ = make_controller()

        state = await controller.open(42)

        assert isinstance(state, Succeeded)
        assert state.value.decision.outcome is SigningOutcome.CAN_SIGN
        assert controller.is_open

    @pytest.mark.asyncio
    async def test_fetch_error_is_failed_state(self):
        controller, api, _, _ = make_controller()
        api.fetch_error = FetchFailed("Contract not found")

        state = await controller.open(42)

        assert isinstance(state, Failed)
        assert state.error.code is ErrorCode.FETCH_FAILED
        assert state.message == "Contract not found"

    @pytest.mark.asyncio
    async def test_close_while_loading_drops_response(self):
        controller, api, _, _ = make_controller()
        api.fetch_gate = asyncio.Event()

        pending = asyncio.ensure_future(controller.open(42))
        await settle()
        controller.close()
        api.fetch_gate.set()
        await pending

        assert controller.detail.state == Idle()
        assert not controller.is_open

    @pytest.mark.asyncio
    async def test_opening_another_contract_resets_state(self):
        controller, _, _, _ = make_controller()
        await controller.open(42)
        await controller.verify()

        await controller.open(43)

        assert controller.contract_id == 43
        assert controller.verification.state == Idle()


class TestSign:

    @pytest.mark.asyncio
    async def test_sign_reloads_and_notifies(self):
        controller, api, _, on_update = make_controller()
        api.after_sign = make_contract(signed_by=(BOB,))
        await controller.open(42)

        state = await controller.sign()

        assert isinstance(state, Succeeded)
        assert api.sign_calls == [42]
        assert controller.detail.value.decision.outcome is SigningOutcome.ALREADY_SIGNED
        assert on_update.calls == 1

    @pytest.mark.asyncio
    async def test_sign_not_allowed_never_calls_api(self):
        controller, api, _, on_update = make_controller(user=MALLORY)
        await controller.open(42)

        state = await controller.sign()

        assert isinstance(state, Failed)
        assert ("reason", "not_participant") in state.error.context
        assert api.sign_calls == []
        assert on_update.calls == 0

    @pytest.mark.asyncio
    async def test_sign_before_load_is_rejected(self):
        controller, api, _, _ = make_controller()

        state = await controller.sign()

        assert isinstance(state, Failed)
        assert ("reason", "not_loaded") in state.error.context
        assert api.sign_calls == []

    @pytest.mark.asyncio
    async def test_sign_error_keeps_server_message(self):
        controller, api, _, on_update = make_controller()
        api.sign_error = SignFailed("Version already signed by this user")
        await controller.open(42)

        state = await controller.sign()

        assert isinstance(state, Failed)
        assert state.error.code is ErrorCode.SIGN_FAILED
        assert state.message == "Version already signed by this user"
        assert on_update.calls == 0


class TestVerify:

    @pytest.mark.asyncio
    async def test_verify_without_version(self):
        controller, _, endpoint, _ = make_controller(contract=make_contract(version_status=None))
        await controller.open(42)

        state = await controller.verify()

        assert isinstance(state, Failed)
        assert state.message == "No current version to verify"
        assert endpoint.calls == []

    @pytest.mark.asyncio
    async def test_verify_current_version(self):
        controller, _, endpoint, _ = make_controller()
        await controller.open(42)

        state = await controller.verify()

        assert isinstance(state, Succeeded)
        assert state.value.overall_success
        assert endpoint.calls == [(42, 3)]

    @pytest.mark.asyncio
    async def test_verify_mismatch_is_a_result_not_an_error(self):
        endpoint = FakeVerifyEndpoint(result=make_result(
            StepStatus.FAILED, StepStatus.SUCCESS, db_discrepancies=("hash mismatch",)
        ))
        controller, _, _, _ = make_controller(endpoint=endpoint)
        await controller.open(42)

        state = await controller.verify()

        assert isinstance(state, Succeeded)
        assert state.value.discrepancies == ("hash mismatch",)

    @pytest.mark.asyncio
    async def test_verify_failure(self):
        endpoint = FakeVerifyEndpoint(error=VerificationFailed("Chain node unavailable"))
        controller, _, _, _ = make_controller(endpoint=endpoint)
        await controller.open(42)

        state = await controller.verify()

        assert isinstance(state, Failed)
        assert state.message == "Chain node unavailable"

    @pytest.mark.asyncio
    async def test_close_while_verifying_drops_result(self):
        endpoint = FakeVerifyEndpoint()
        endpoint.gate = asyncio.Event()
        controller, _, _, _ = make_controller(endpoint=endpoint)
        await controller.open(42)

        pending = asyncio.ensure_future(controller.verify())
        await settle()
        controller.close()
        endpoint.gate.set()
        await pending

        assert controller.verification.state == Idle()
