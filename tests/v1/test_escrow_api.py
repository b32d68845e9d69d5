"""Tests for dual-key escrow endpoints."""

from fastapi import status


def _submit(client, agreement_id: str, party: str, secret: str):
    return client.post(
        f"/api/v1/escrow/{agreement_id}/secrets",
        json={"party": party, "secret": secret},
    )


def test_both_secrets_trigger_contract(client, chain, artist, organizer) -> None:
    first = _submit(client, "event_9", "artist", artist["secret"])
    assert first.status_code == status.HTTP_200_OK
    assert first.json()["release_started"] is False
    assert first.json()["agreement"]["contract_state"] == "empty"

    second = _submit(client, "event_9", "organizer", organizer["secret"])
    assert second.status_code == status.HTTP_200_OK
    body = second.json()
    assert body["release_started"] is True
    assert body["agreement"]["contract_reference"] == "CONTRACT-event_9"
    assert len(chain.create_calls) == 1

    agreement = client.get("/api/v1/escrow/event_9").json()
    assert agreement["release_triggered"] is True
    assert artist["secret"] not in str(agreement)


def test_wrong_secret_is_forbidden(client, organizer) -> None:
    response = _submit(client, "event_9", "artist", organizer["secret"])
    assert response.status_code == status.HTTP_403_FORBIDDEN


def test_unknown_agreement_is_not_found(client, artist) -> None:
    assert _submit(client, "event_404", "artist", artist["secret"]).status_code == 404
    assert client.get("/api/v1/escrow/event_9").status_code == status.HTTP_404_NOT_FOUND


def test_failed_chain_call_is_bad_gateway(client, app, flaky_chain, artist, organizer) -> None:
    app.state.chain_client = flaky_chain
    _submit(client, "event_9", "artist", artist["secret"])

    failed = _submit(client, "event_9", "organizer", organizer["secret"])
    assert failed.status_code == status.HTTP_502_BAD_GATEWAY

    retried = _submit(client, "event_9", "organizer", organizer["secret"])
    assert retried.status_code == status.HTTP_200_OK
    assert retried.json()["release_started"] is True


def test_release_payments_flow(client, chain, finished_agreement, artist, organizer) -> None:
    url = f"/api/v1/escrow/{finished_agreement}/release"

    not_ready = client.post(url, json={"secret": organizer["secret"]})
    assert not_ready.status_code == status.HTTP_409_CONFLICT

    _submit(client, finished_agreement, "artist", artist["secret"])
    _submit(client, finished_agreement, "organizer", organizer["secret"])

    assert client.post(url, json={"secret": artist["secret"]}).status_code == 403
    released = client.post(url, json={"secret": organizer["secret"]})
    assert released.status_code == status.HTTP_200_OK
    assert released.json()["newly_released"] is True
    assert chain.release_calls == [(finished_agreement, f"CONTRACT-{finished_agreement}")]
