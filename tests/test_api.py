"""
Integration tests for the Lending Core API
Tests end-to-end workflows using FastAPI TestClient
"""

import pytest
from fastapi.testclient import TestClient

from lending_core.api import app
from lending_core.api.dependencies import get_lending_system

from conftest import ADMIN, LENDER, BORROWER, PERIOD, START, POOL_DEPOSIT, RATE_FACTOR


def as_caller(caller):
    return {"X-Caller": caller}


@pytest.fixture
def client(env):
    """Test client bound to the shared lending environment"""
    app.dependency_overrides[get_lending_system] = lambda: env.system
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def loan_id(client, env):
    r = client.post("/loans", headers=as_caller(BORROWER), json={
        "program_id": env.program_id,
        "borrow_amount": 1000,
        "duration_in_periods": 10
    })
    assert r.status_code == 201
    return r.json()["loan_id"]


class TestHealthEndpoints:
    """Test basic health endpoint"""
    
    def test_health(self, client):
        r = client.get("/health")
        assert r.status_code == 200
        assert r.json()["status"] == "healthy"


class TestLoanFlow:
    """End-to-end loan lifecycle tests"""
    
    def test_take_and_get_loan(self, client, loan_id):
        assert loan_id == 0
        r = client.get(f"/loans/{loan_id}")
        assert r.status_code == 200
        data = r.json()
        assert data["borrow_amount"] == 1000
        assert data["borrower"] == BORROWER
        assert data["status"] == "active"
    
    def test_borrower_loans(self, client, loan_id):
        r = client.get(f"/loans/borrowers/{BORROWER}")
        assert r.status_code == 200
        assert [loan["id"] for loan in r.json()["loans"]] == [loan_id]
        assert client.get("/loans/borrowers/nobody").json()["loans"] == []
    
    def test_unknown_loan(self, client):
        r = client.get("/loans/99")
        assert r.status_code == 404
        assert r.json()["detail"]["code"] == "LOAN_NOT_EXIST"
    
    def test_preview(self, client, loan_id):
        r = client.get(f"/loans/{loan_id}/preview", params={"timestamp": START + 2 * PERIOD})
        assert r.status_code == 200
        assert r.json() == {"period_index": 20002, "tracked_balance": 1020, "outstanding_balance": 1020}
    
    def test_partial_then_full_repayment(self, client, loan_id):
        r = client.post(f"/loans/{loan_id}/repay", headers=as_caller(BORROWER), json={"amount": 400})
        assert r.status_code == 200
        assert r.json()["repaid_amount"] == 400
        
        r = client.post(f"/loans/{loan_id}/repay", headers=as_caller(BORROWER), json={})
        assert r.status_code == 200
        assert r.json()["repaid_amount"] == 600
        assert client.get(f"/loans/{loan_id}").json()["status"] == "repaid"
        
        r = client.post(f"/loans/{loan_id}/repay", headers=as_caller(BORROWER), json={})
        assert r.status_code == 409
        assert r.json()["detail"]["code"] == "LOAN_ALREADY_REPAID"
    
    def test_invalid_amount(self, client, env):
        r = client.post("/loans", headers=as_caller(BORROWER), json={
            "program_id": env.program_id, "borrow_amount": 0, "duration_in_periods": 10
        })
        assert r.status_code == 400
        assert r.json()["detail"]["code"] == "INVALID_AMOUNT"
    
    def test_missing_caller_header(self, client, env):
        r = client.post("/loans", json={
            "program_id": env.program_id, "borrow_amount": 1000, "duration_in_periods": 10
        })
        assert r.status_code == 422
    
    def test_freeze_requires_lender(self, client, loan_id):
        r = client.post(f"/loans/{loan_id}/freeze", headers=as_caller(BORROWER))
        assert r.status_code == 403
        assert r.json()["detail"]["code"] == "UNAUTHORIZED"
        
        r = client.post(f"/loans/{loan_id}/freeze", headers=as_caller(LENDER))
        assert r.status_code == 200
        assert client.get(f"/loans/{loan_id}").json()["status"] == "frozen"
        
        r = client.post(f"/loans/{loan_id}/unfreeze", headers=as_caller(LENDER))
        assert r.json()["status"] == "active"
    
    def test_revoke(self, client, loan_id):
        r = client.post(f"/loans/{loan_id}/revoke", headers=as_caller(BORROWER))
        assert r.status_code == 200
        assert client.get(f"/loans/{loan_id}").json()["status"] == "recovered"
    
    def test_interest_rate_update(self, client, loan_id):
        r = client.post(f"/loans/{loan_id}/interest-rate/primary",
                        headers=as_caller(LENDER), json={"interest_rate": 0})
        assert r.status_code == 200
        assert client.get(f"/loans/{loan_id}").json()["interest_rate_primary"] == 0
        
        r = client.post(f"/loans/{loan_id}/interest-rate/primary",
                        headers=as_caller(LENDER), json={"interest_rate": 0})
        assert r.status_code == 400
        
        r = client.post(f"/loans/{loan_id}/interest-rate/tertiary",
                        headers=as_caller(LENDER), json={"interest_rate": 0})
        assert r.status_code == 404
    
    def test_auto_repay(self, client, env, loan_id):
        env.tokens.approve("USDX", BORROWER, env.pool_id, 1000)
        r = client.post("/loans/auto-repay", headers=as_caller(ADMIN),
                        json={"loan_ids": [loan_id], "amounts": [250]})
        assert r.status_code == 200
        assert env.ledger.get_loan_state(loan_id).tracked_balance == 750
        
        r = client.post("/loans/auto-repay", headers=as_caller(LENDER),
                        json={"loan_ids": [loan_id], "amounts": [250]})
        assert r.status_code == 403


class TestInstallmentFlow:
    """Installment loans through the API"""
    
    def test_take_preview_and_revoke(self, client, env):
        r = client.post("/loans/installments", headers=as_caller(LENDER), json={
            "program_id": env.program_id,
            "borrower": BORROWER,
            "borrow_amounts": [100, 200],
            "addon_amounts": [0, 0],
            "durations": [5, 10]
        })
        assert r.status_code == 201
        assert r.json() == {"first_installment_id": 0, "installment_count": 2}
        
        r = client.get("/loans/1/installment-preview")
        assert r.status_code == 200
        assert r.json()["total_outstanding_balance"] == 300
        
        r = client.post("/loans/1/revoke", headers=as_caller(BORROWER))
        assert r.status_code == 409
        assert r.json()["detail"]["code"] == "LOAN_TYPE_UNEXPECTED"
        
        r = client.post("/loans/1/revoke", params={"installment": "true"}, headers=as_caller(BORROWER))
        assert r.status_code == 200
        assert env.borrowable() == POOL_DEPOSIT


class TestPoolFlow:
    """Pool and program endpoints"""
    
    def test_balances(self, client, env):
        r = client.get(f"/pools/{env.pool_id}/balances")
        assert r.status_code == 200
        assert r.json()["borrowable"] == POOL_DEPOSIT
    
    def test_list_pools(self, client, env):
        r = client.get("/pools")
        assert r.status_code == 200
        assert [pool["id"] for pool in r.json()["pools"]] == [env.pool_id]
    
    def test_unknown_pool(self, client):
        r = client.get("/pools/pool-9/balances")
        assert r.status_code == 404
        assert r.json()["detail"]["code"] == "POOL_NOT_EXIST"
    
    def test_deposit_and_withdraw(self, client, env):
        r = client.post(f"/pools/{env.pool_id}/deposit", headers=as_caller(LENDER), json={"amount": 500})
        assert r.status_code == 200
        assert r.json()["borrowable"] == POOL_DEPOSIT + 500
        
        r = client.post(f"/pools/{env.pool_id}/withdraw", headers=as_caller(LENDER),
                        json={"borrowable_amount": 700})
        assert r.json()["borrowable"] == POOL_DEPOSIT - 200
        
        r = client.post(f"/pools/{env.pool_id}/withdraw", headers=as_caller(LENDER),
                        json={"addon_amount": 1})
        assert r.status_code == 409
        assert r.json()["detail"]["code"] == "INSUFFICIENT_BALANCE"
    
    def test_addon_treasury(self, client, env):
        r = client.put(f"/pools/{env.pool_id}/addon-treasury", headers=as_caller(LENDER),
                       json={"treasury": "treasury"})
        assert r.status_code == 200
        assert r.json()["addon_mode"] == "transfer"
        
        r = client.put(f"/pools/{env.pool_id}/addon-treasury", headers=as_caller(LENDER),
                       json={"treasury": ""})
        assert r.status_code == 409
        assert r.json()["detail"]["code"] == "ADDON_MODE_CHANGE_FORBIDDEN"
    
    def test_create_program(self, client, env):
        r = client.post("/programs", headers=as_caller(LENDER), json={
            "credit_line_id": env.credit_line_id, "pool_id": env.pool_id
        })
        assert r.status_code == 201
        assert r.json()["id"] == 2


class TestCreditLineFlow:
    """Credit line and borrower endpoints"""
    
    def test_configure_and_get_borrower(self, client, env):
        r = client.put(f"/credit-lines/{env.credit_line_id}/borrowers/alice", headers=as_caller(ADMIN), json={
            "expiration": START + 30 * PERIOD,
            "min_borrow_amount": 10,
            "max_borrow_amount": 5000,
            "min_duration_in_periods": 1,
            "max_duration_in_periods": 30,
            "interest_rate_primary": RATE_FACTOR // 100,
            "interest_rate_secondary": RATE_FACTOR // 50,
            "borrow_policy": "decrease",
        })
        assert r.status_code == 200
        
        r = client.get(f"/credit-lines/{env.credit_line_id}/borrowers/alice")
        assert r.status_code == 200
        data = r.json()
        assert data["max_borrow_amount"] == 5000
        assert data["borrow_policy"] == "decrease"
    
    def test_invalid_borrower_configuration(self, client, env):
        r = client.put(f"/credit-lines/{env.credit_line_id}/borrowers/alice", headers=as_caller(ADMIN), json={
            "expiration": START + 30 * PERIOD,
            "min_borrow_amount": 10,
            "max_borrow_amount": 5,
            "min_duration_in_periods": 1,
            "max_duration_in_periods": 30,
            "interest_rate_primary": 0,
            "interest_rate_secondary": 0,
        })
        assert r.status_code == 400
        assert r.json()["detail"]["code"] == "INVALID_BORROWER_CONFIGURATION"
    
    def test_unconfigured_borrower(self, client, env):
        r = client.get(f"/credit-lines/{env.credit_line_id}/borrowers/nobody")
        assert r.status_code == 404
    
    def test_create_credit_line_requires_owner(self, client):
        r = client.post("/credit-lines", headers=as_caller(LENDER), json={"lender": LENDER, "token": "USDX"})
        assert r.status_code == 403
