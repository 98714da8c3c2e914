"""Route tests for /api/v1/wallet."""

from datetime import timedelta

import pytest

from moveup.domain import qr_codec

BASE = "/api/v1/wallet"
INSTRUCTOR_ID = "trainer_01"
IBAN = "IT60X0542811101000000123456"


@pytest.fixture
def earned(client, clock):
    """One completed €50 lesson for the instructor."""
    created = client.post(
        "/api/v1/bookings",
        json={
            "lesson_id": "lesson_1",
            "instructor_id": INSTRUCTOR_ID,
            "user_id": "student_01",
            "scheduled_at": (clock() + timedelta(hours=1)).isoformat(),
            "total_amount": "50.00",
        },
    ).json()
    client.post(
        f"/api/v1/bookings/{created['id']}/authorize", json={"payment_reference": "pi_1"}
    )
    clock.advance(hours=1)
    token = qr_codec.encode_ids(created["id"], INSTRUCTOR_ID)
    response = client.post(
        f"/api/v1/bookings/{created['id']}/validate", json={"qr_code_data": token}
    )
    assert response.status_code == 200, response.text
    return created


def _setup_bank(client):
    return client.post(
        f"{BASE}/setup",
        params={"instructor_id": INSTRUCTOR_ID},
        json={"iban": IBAN, "account_holder_name": "Mario Rossi"},
    )


class TestWallet:
    def test_unknown_wallet(self, client):
        response = client.get(BASE, params={"instructor_id": "nobody"})
        assert response.status_code == 404
        assert response.json()["code"] == "WALLET_NOT_FOUND"

    def test_wallet_after_lesson(self, client, earned):
        body = client.get(BASE, params={"instructor_id": INSTRUCTOR_ID}).json()
        assert body["balance_cents"] == 4900
        assert body["available_balance_cents"] == 4900
        assert body["pending_earnings_cents"] == 0
        assert body["total_earnings"] == "49.00"
        assert body["average_lesson_price"] == "49.00"
        assert body["bank_account_setup"] is False
        assert [t["type_label"] for t in body["recent_transactions"]] == ["Pagamento Lezione"]

    def test_setup_bank_account(self, client):
        response = _setup_bank(client)
        assert response.status_code == 200, response.text
        body = response.json()
        assert body["bank_account_setup"] is True
        assert body["masked_iban"] == "IT60 •••• •••• •••• 3456"
        assert body["iban_last_four"] == "3456"
        assert IBAN not in response.text

    def test_setup_rejects_bad_iban(self, client):
        response = client.post(
            f"{BASE}/setup",
            params={"instructor_id": INSTRUCTOR_ID},
            json={"iban": "IT60X0542811101000000123", "account_holder_name": "Mario Rossi"},
        )
        assert response.status_code == 400
        assert response.json()["code"] == "INVALID_IBAN"


class TestTransactions:
    def test_history(self, client, earned, clock):
        _setup_bank(client)
        clock.advance(minutes=5)
        client.post(
            f"{BASE}/payouts", params={"instructor_id": INSTRUCTOR_ID}, json={"amount": "20.00"}
        )

        response = client.get(
            f"{BASE}/transactions", params={"instructor_id": INSTRUCTOR_ID, "size": 1}
        )
        body = response.json()
        assert body["total"] == 2
        assert body["has_more"] is True
        assert [t["type"] for t in body["transactions"]] == ["payout"]

    def test_history_for_unknown_instructor_is_empty(self, client):
        body = client.get(f"{BASE}/transactions", params={"instructor_id": "nobody"}).json()
        assert body["transactions"] == []
        assert body["total"] == 0

    def test_page_must_be_positive(self, client):
        response = client.get(
            f"{BASE}/transactions", params={"instructor_id": INSTRUCTOR_ID, "page": 0}
        )
        assert response.status_code == 422


class TestFees:
    def test_calculate_fee(self, client):
        response = client.post(f"{BASE}/calculate-fee", json={"gross_amount": "50.00"})
        assert response.status_code == 200
        assert response.json() == {
            "gross_amount": "50.00",
            "platform_fee": "1.00",
            "net_amount": "49.00",
            "fee_percentage": "2.00",
        }

    def test_calculate_fee_rejects_negative(self, client):
        response = client.post(f"{BASE}/calculate-fee", json={"gross_amount": "-5"})
        assert response.status_code == 400


class TestPayouts:
    def test_payout(self, client, earned):
        _setup_bank(client)
        response = client.post(
            f"{BASE}/payouts", params={"instructor_id": INSTRUCTOR_ID}, json={"amount": "20.00"}
        )
        assert response.status_code == 201, response.text
        body = response.json()
        assert body["type"] == "payout"
        assert body["status"] == "processing"
        assert body["status_label"] == "In Elaborazione"
        assert body["amount_cents"] == 2000
        assert body["signed_amount_cents"] == -2000

        wallet = client.get(BASE, params={"instructor_id": INSTRUCTOR_ID}).json()
        assert wallet["balance_cents"] == 4900
        assert wallet["available_balance_cents"] == 2900

    def test_payout_requires_bank_account(self, client, earned):
        response = client.post(
            f"{BASE}/payouts", params={"instructor_id": INSTRUCTOR_ID}, json={"amount": "10.00"}
        )
        assert response.status_code == 422
        assert response.json()["code"] == "BANK_ACCOUNT_REQUIRED"

    def test_payout_above_balance(self, client, earned):
        _setup_bank(client)
        response = client.post(
            f"{BASE}/payouts", params={"instructor_id": INSTRUCTOR_ID}, json={"amount": "49.01"}
        )
        assert response.status_code == 422
        assert response.json()["code"] == "INSUFFICIENT_BALANCE"

    def test_payout_amount_must_be_positive(self, client):
        response = client.post(
            f"{BASE}/payouts", params={"instructor_id": INSTRUCTOR_ID}, json={"amount": "0"}
        )
        assert response.status_code == 422
