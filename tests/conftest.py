
# tests/conftest.py

import base64
import copy
import zlib
from contextlib import contextmanager
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

import psycopg2
import pytest
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import padding, rsa
from cryptography.x509.oid import NameOID
from fastapi.testclient import TestClient

from main import app
from security import create_access_token
from settings import settings
from app.invoices.repository import format_invoice_number
from app.payouts.model import PayoutStatus
from app.providers.stripe_api import StripeError


USER_ID = "user_1"
OUTSIDER_ID = "user_outsider"
WORKSPACE_ID = "ws_1"
PROGRAM_ID = "prog_1"
PAYPAL_WEBHOOK_ID = "WH-TEST-0001"
PAYPAL_CERT_URL = "https://api.paypal.com/v1/notifications/certs/CERT-360caa42-fca2a594-1d93a270"


# ---------------------------
# Client + Auth Helpers
# ---------------------------

@pytest.fixture(scope="session")
def client() -> TestClient:
    # Needed so tests can assert 500s instead of pytest re-raising server exceptions
    return TestClient(app, raise_server_exceptions=False)


def auth_headers(user_id: str = USER_ID) -> Dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(user_id)}"}


# ---------------------------
# In-memory store standing in for the app.* tables
# ---------------------------

_STATE_FIELDS = (
    "workspaces",
    "members",
    "programs",
    "partners",
    "enrollments",
    "links",
    "payouts",
    "invoices",
    "commissions",
    "rewards",
    "partner_rewards",
)


class FakeStore:
    def __init__(self):
        self.workspaces: Dict[str, dict] = {}
        self.members: set = set()
        self.programs: Dict[str, dict] = {}
        self.partners: Dict[str, dict] = {}
        self.enrollments: Dict[tuple, str] = {}  # (program_id, partner_id) -> status
        self.links: list = []
        self.payouts: Dict[str, dict] = {}
        self.invoices: Dict[str, dict] = {}
        self.commissions: Dict[str, dict] = {}
        self.rewards: Dict[str, dict] = {}
        self.partner_rewards: set = set()  # (reward_id, partner_id)
        self.commits = 0
        self.rollbacks = 0
        self._seq = 0

    # ---- transactions ----

    def snapshot(self) -> dict:
        return copy.deepcopy({name: getattr(self, name) for name in _STATE_FIELDS})

    @contextmanager
    def transaction(self):
        before = self.snapshot()
        try:
            yield self
        except Exception:
            for name, value in before.items():
                setattr(self, name, value)
            self.rollbacks += 1
            raise
        self.commits += 1

    def _next_id(self, prefix: str) -> str:
        self._seq += 1
        return f"{prefix}{self._seq}"

    # ---- seeding ----

    def add_workspace(self, workspace_id=WORKSPACE_ID, *, plan="business", stripe_id="cus_1",
                      invoice_prefix="ACME", default_program_id=PROGRAM_ID, members=(USER_ID,)):
        self.workspaces[workspace_id] = {
            "id": workspace_id,
            "name": "Acme",
            "slug": workspace_id,
            "plan": plan,
            "stripe_id": stripe_id,
            "invoice_prefix": invoice_prefix,
            "default_program_id": default_program_id,
        }
        for user_id in members:
            self.members.add((workspace_id, user_id))

    def add_program(self, program_id=PROGRAM_ID, *, workspace_id=WORKSPACE_ID, min_payout_amount=10000,
                    default_reward_id=None):
        self.programs[program_id] = {
            "id": program_id,
            "workspace_id": workspace_id,
            "name": "Acme Partners",
            "logo": "https://cdn.example.com/acme.png",
            "min_payout_amount": min_payout_amount,
            "default_reward_id": default_reward_id,
        }

    def add_partner(self, partner_id, *, email=None, payouts_enabled=True, program_id=PROGRAM_ID,
                    enrollment="approved"):
        self.partners[partner_id] = {
            "id": partner_id,
            "name": partner_id.title(),
            "email": email,
            "image": None,
            "payouts_enabled_at": datetime(2026, 1, 1, tzinfo=timezone.utc) if payouts_enabled else None,
        }
        if enrollment:
            self.enrollments[(program_id, partner_id)] = enrollment

    def add_payout(self, payout_id, *, partner_id, amount, status="pending", program_id=PROGRAM_ID,
                   invoice_id=None, created_offset=0):
        created = datetime(2026, 9, 1, tzinfo=timezone.utc) + timedelta(minutes=created_offset)
        self.payouts[payout_id] = {
            "id": payout_id,
            "program_id": program_id,
            "partner_id": partner_id,
            "invoice_id": invoice_id,
            "user_id": None,
            "amount": amount,
            "status": status,
            "paypal_transfer_id": None,
            "period_start": datetime(2026, 8, 1, tzinfo=timezone.utc),
            "period_end": datetime(2026, 8, 31, tzinfo=timezone.utc),
            "paid_at": None,
            "created_at": created,
            "updated_at": created,
        }

    def add_commission(self, commission_id, *, payout_id, status="processed"):
        payout = self.payouts[payout_id]
        self.commissions[commission_id] = {
            "id": commission_id,
            "program_id": payout["program_id"],
            "partner_id": payout["partner_id"],
            "payout_id": payout_id,
            "amount": payout["amount"],
            "status": status,
        }

    def add_link(self, *, partner_id, program_id=PROGRAM_ID, clicks=0, leads=0, sales=0, sale_amount=0):
        self.links.append({
            "program_id": program_id,
            "partner_id": partner_id,
            "clicks": clicks,
            "leads": leads,
            "sales": sales,
            "sale_amount": sale_amount,
        })

    # ---- app.programs.repository ----

    def get_workspace(self, conn, *, workspace_id):
        ws = self.workspaces.get(workspace_id)
        return dict(ws) if ws else None

    def is_workspace_member(self, conn, *, workspace_id, user_id):
        return (workspace_id, user_id) in self.members

    def get_program(self, conn, *, program_id, workspace_id=None):
        program = self.programs.get(program_id)
        if not program or (workspace_id is not None and program["workspace_id"] != workspace_id):
            return None
        return dict(program)

    # ---- app.payouts.repository ----

    def _payout_view(self, payout: dict) -> dict:
        partner = self.partners[payout["partner_id"]]
        program = self.programs[payout["program_id"]]
        return {
            **payout,
            "partner_email": partner["email"],
            "partner_name": partner["name"],
            "program_name": program["name"],
            "program_logo": program["logo"],
        }

    def list_eligible_payouts(self, conn, *, program_id, min_payout_amount):
        rows = [
            self._payout_view(p)
            for p in self.payouts.values()
            if p["program_id"] == program_id
            and p["status"] == "pending"
            and p["invoice_id"] is None
            and p["amount"] >= min_payout_amount
            and self.partners[p["partner_id"]]["payouts_enabled_at"] is not None
        ]
        return sorted(rows, key=lambda r: r["created_at"])

    def mark_payouts_processing(self, conn, *, payout_ids, invoice_id, user_id):
        updated = 0
        for payout_id in payout_ids:
            p = self.payouts.get(payout_id)
            if p and p["status"] == "pending" and p["invoice_id"] is None:
                p.update(status="processing", invoice_id=invoice_id, user_id=user_id)
                updated += 1
        return updated

    def get_payout(self, conn, *, payout_id, for_update=False):
        p = self.payouts.get(payout_id)
        return self._payout_view(p) if p else None

    def complete_payout(self, conn, *, payout_id, paypal_transfer_id, from_statuses=("processing",), user_id=None):
        p = self.payouts.get(payout_id)
        if not p or p["status"] not in from_statuses:
            return False
        p["status"] = "completed"
        p["paid_at"] = datetime.now(timezone.utc)
        if paypal_transfer_id is not None:
            p["paypal_transfer_id"] = paypal_transfer_id
        if user_id is not None:
            p["user_id"] = user_id
        return True

    def update_payout_status(self, conn, *, payout_id, new_status, paypal_transfer_id,
                             from_status=PayoutStatus.PROCESSING):
        p = self.payouts.get(payout_id)
        if not p or p["status"] != PayoutStatus(from_status).value:
            return False
        p["status"] = PayoutStatus(new_status).value
        if paypal_transfer_id is not None:
            p["paypal_transfer_id"] = paypal_transfer_id
        return True

    def mark_commissions_paid(self, conn, *, payout_id):
        n = 0
        for c in self.commissions.values():
            if c["payout_id"] == payout_id and c["status"] != "paid":
                c["status"] = "paid"
                n += 1
        return n

    def _filtered_payouts(self, *, program_id, status=None, partner_id=None, invoice_id=None):
        return [
            p for p in self.payouts.values()
            if p["program_id"] == program_id
            and (not status or p["status"] == status)
            and (not partner_id or p["partner_id"] == partner_id)
            and (not invoice_id or p["invoice_id"] == invoice_id)
        ]

    def list_payouts(self, conn, *, program_id, status=None, partner_id=None, invoice_id=None,
                     sort_by="amount", sort_order="desc", page=1, page_size=100):
        rows = self._filtered_payouts(
            program_id=program_id, status=status, partner_id=partner_id, invoice_id=invoice_id
        )
        present = [r for r in rows if r[sort_by] is not None]
        missing = [r for r in rows if r[sort_by] is None]
        present.sort(key=lambda r: r[sort_by], reverse=(sort_order == "desc"))
        ordered = present + missing
        start = (page - 1) * page_size
        out = []
        for p in ordered[start:start + page_size]:
            partner = self.partners[p["partner_id"]]
            out.append({
                **p,
                "partner_name": partner["name"],
                "partner_email": partner["email"],
                "partner_image": partner["image"],
                "partner_payouts_enabled_at": partner["payouts_enabled_at"],
            })
        return out

    def count_payouts(self, conn, *, program_id, status=None, partner_id=None, invoice_id=None):
        return len(self._filtered_payouts(
            program_id=program_id, status=status, partner_id=partner_id, invoice_id=invoice_id
        ))

    def count_payouts_by_status(self, conn, *, program_id, partner_id=None, invoice_id=None):
        counts: Dict[str, int] = {}
        for p in self._filtered_payouts(program_id=program_id, partner_id=partner_id, invoice_id=invoice_id):
            counts[p["status"]] = counts.get(p["status"], 0) + 1
        return [{"status": s, "count": n} for s, n in sorted(counts.items())]

    # ---- app.invoices.repository ----

    def next_invoice_number(self, conn, *, workspace_id, prefix):
        existing = sum(1 for inv in self.invoices.values() if inv["workspace_id"] == workspace_id)
        return format_invoice_number(prefix, existing)

    def create_invoice(self, conn, *, workspace_id, program_id, number, amount, fee, total):
        for inv in self.invoices.values():
            if inv["workspace_id"] == workspace_id and inv["number"] == number:
                raise RuntimeError("invoices_workspace_number_key")
        invoice = {
            "id": self._next_id("inv_"),
            "number": number,
            "workspace_id": workspace_id,
            "program_id": program_id,
            "amount": amount,
            "fee": fee,
            "total": total,
            "created_at": datetime.now(timezone.utc),
        }
        self.invoices[invoice["id"]] = invoice
        return dict(invoice)

    # ---- app.rewards.repository ----

    def _reward_view(self, reward: dict) -> dict:
        count = sum(1 for rid, _ in self.partner_rewards if rid == reward["id"])
        return {**reward, "partners_count": count}

    def list_rewards(self, conn, *, program_id):
        rows = [self._reward_view(r) for r in self.rewards.values() if r["program_id"] == program_id]
        return sorted(rows, key=lambda r: r["created_at"])

    def get_reward(self, conn, *, program_id, reward_id, for_update=False):
        r = self.rewards.get(reward_id)
        if not r or r["program_id"] != program_id:
            return None
        return self._reward_view(r)

    def program_wide_reward_exists(self, conn, *, program_id, event, exclude_reward_id=None):
        for r in self.rewards.values():
            if r["program_id"] != program_id or r["event"] != event or r["id"] == exclude_reward_id:
                continue
            if self._reward_view(r)["partners_count"] == 0:
                return True
        return False

    def count_enrolled_partners(self, conn, *, program_id, partner_ids):
        return len({pid for pid in partner_ids if (program_id, pid) in self.enrollments})

    def insert_reward(self, conn, *, program_id, event, type, amount, max_duration, max_amount):
        now = datetime.now(timezone.utc) + timedelta(microseconds=self._seq)
        reward_id = self._next_id("rw_")
        self.rewards[reward_id] = {
            "id": reward_id,
            "program_id": program_id,
            "event": event,
            "type": type,
            "amount": amount,
            "max_duration": max_duration,
            "max_amount": max_amount,
            "created_at": now,
            "updated_at": now,
        }
        return reward_id

    def update_reward(self, conn, *, reward_id, type, amount, max_duration, max_amount):
        self.rewards[reward_id].update(
            type=type, amount=amount, max_duration=max_duration, max_amount=max_amount,
            updated_at=datetime.now(timezone.utc),
        )

    def replace_reward_partners(self, conn, *, reward_id, partner_ids):
        self.partner_rewards = {(rid, pid) for rid, pid in self.partner_rewards if rid != reward_id}
        for pid in partner_ids:
            self.partner_rewards.add((reward_id, pid))

    def delete_reward(self, conn, *, reward_id):
        self.partner_rewards = {(rid, pid) for rid, pid in self.partner_rewards if rid != reward_id}
        self.rewards.pop(reward_id, None)

    # ---- app.leaderboard.service ----

    def fetch_leaderboard_rows(self, conn, *, program_id, limit=20):
        totals: Dict[str, dict] = {}
        for (pid_program, partner_id), status in self.enrollments.items():
            if pid_program == program_id and status == "approved":
                totals[partner_id] = {
                    "id": partner_id,
                    "total_clicks": 0,
                    "total_leads": 0,
                    "total_sales": 0,
                    "total_sale_amount": 0,
                }
        for link in self.links:
            row = totals.get(link["partner_id"])
            if row is None or link["program_id"] != program_id:
                continue
            row["total_clicks"] += link["clicks"]
            row["total_leads"] += link["leads"]
            row["total_sales"] += link["sales"]
            row["total_sale_amount"] += link["sale_amount"]
        rows = sorted(
            totals.values(),
            key=lambda r: (-r["total_sale_amount"], -r["total_leads"], -r["total_clicks"], r["id"]),
        )
        return rows[:limit]


_PATCHED = {
    "app.programs.repository": ("get_workspace", "is_workspace_member", "get_program"),
    "app.payouts.repository": (
        "list_eligible_payouts",
        "mark_payouts_processing",
        "get_payout",
        "complete_payout",
        "update_payout_status",
        "mark_commissions_paid",
        "list_payouts",
        "count_payouts",
        "count_payouts_by_status",
    ),
    "app.invoices.repository": ("next_invoice_number", "create_invoice"),
    "app.rewards.repository": (
        "list_rewards",
        "get_reward",
        "program_wide_reward_exists",
        "count_enrolled_partners",
        "insert_reward",
        "update_reward",
        "replace_reward_partners",
        "delete_reward",
    ),
    "app.leaderboard.service": ("fetch_leaderboard_rows",),
}

_TRANSACTION_USERS = (
    "app.payouts.service",
    "app.rewards.service",
    "deps.workspace",
    "routes.payouts",
    "routes.leaderboard",
)


@pytest.fixture
def store(monkeypatch) -> FakeStore:
    import importlib

    s = FakeStore()
    for module_name, names in _PATCHED.items():
        module = importlib.import_module(module_name)
        for name in names:
            monkeypatch.setattr(module, name, getattr(s, name))
    for module_name in _TRANSACTION_USERS:
        monkeypatch.setattr(importlib.import_module(module_name), "get_conn", s.transaction)
    return s


@pytest.fixture
def seeded(store) -> FakeStore:
    """
    Workspace + program (min payout $100) with:
      pn_1, pn_2 payouts-enabled with pending payouts over the minimum,
      pn_3 not payouts-enabled, pn_4 below the minimum.
    """
    store.add_workspace()
    store.add_program()
    store.add_partner("pn_1", email="ada@example.com")
    store.add_partner("pn_2", email=None)
    store.add_partner("pn_3", email="cy@example.com", payouts_enabled=False)
    store.add_partner("pn_4", email="di@example.com")
    store.add_payout("po_1", partner_id="pn_1", amount=10000, created_offset=1)
    store.add_payout("po_2", partner_id="pn_2", amount=25000, created_offset=2)
    store.add_payout("po_3", partner_id="pn_3", amount=40000, created_offset=3)
    store.add_payout("po_4", partner_id="pn_4", amount=5000, created_offset=4)
    return store


# ---------------------------
# Providers
# ---------------------------

class FakeStripe:
    def __init__(self):
        self.payment_methods: Dict[str, dict] = {
            "pm_card": {"id": "pm_card", "type": "card", "customer": "cus_1"},
            "pm_ach": {"id": "pm_ach", "type": "us_bank_account", "customer": "cus_1"},
            "pm_other_customer": {"id": "pm_other_customer", "type": "card", "customer": "cus_2"},
            "pm_sepa": {"id": "pm_sepa", "type": "sepa_debit", "customer": "cus_1"},
        }
        self.intents: list = []
        self.charge_error: Optional[StripeError] = None

    def retrieve_payment_method(self, payment_method_id: str) -> dict:
        pm = self.payment_methods.get(payment_method_id)
        if pm is None:
            raise StripeError("No such PaymentMethod", http_status=404, code="resource_missing")
        return dict(pm)

    def create_payment_intent(self, **kwargs: Any) -> dict:
        if self.charge_error is not None:
            raise self.charge_error
        intent = {"id": f"pi_{len(self.intents) + 1}", "status": "processing", **kwargs}
        self.intents.append(intent)
        return intent


@pytest.fixture
def stripe() -> FakeStripe:
    return FakeStripe()


class RecordingJobs:
    """BackgroundTasks stand-in that keeps the scheduled jobs for inspection."""

    def __init__(self):
        self.tasks: list = []

    def add_task(self, func, *args, **kwargs):
        self.tasks.append((func, args, kwargs))

    def run_all(self):
        for func, args, kwargs in self.tasks:
            func(*args, **kwargs)

    @property
    def job_names(self) -> list:
        # enqueue() schedules run_best_effort(job_name, func, ...)
        return [args[0] for _, args, _ in self.tasks]


@pytest.fixture
def jobs() -> RecordingJobs:
    return RecordingJobs()


class PaypalSigner:
    """Self-signed stand-in for PayPal's message verification certificate."""

    def __init__(self):
        self.key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
        name = x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, "messageverificationcerts.paypal.com")])
        now = datetime.now(timezone.utc)
        cert = (
            x509.CertificateBuilder()
            .subject_name(name)
            .issuer_name(name)
            .public_key(self.key.public_key())
            .serial_number(x509.random_serial_number())
            .not_valid_before(now - timedelta(days=1))
            .not_valid_after(now + timedelta(days=1))
            .sign(self.key, hashes.SHA256())
        )
        self.cert_pem = cert.public_bytes(serialization.Encoding.PEM)

    def headers(self, raw: bytes, *, webhook_id: str = PAYPAL_WEBHOOK_ID,
                transmission_id: str = "b2384410-f8d2-11ea-8d7e-4d3fd5c3ffe0",
                transmission_time: str = "2026-10-19T10:00:00Z",
                cert_url: str = PAYPAL_CERT_URL) -> Dict[str, str]:
        crc = zlib.crc32(raw) & 0xFFFFFFFF
        message = f"{transmission_id}|{transmission_time}|{webhook_id}|{crc}".encode("utf-8")
        sig = self.key.sign(message, padding.PKCS1v15(), hashes.SHA256())
        return {
            "paypal-transmission-id": transmission_id,
            "paypal-transmission-time": transmission_time,
            "paypal-transmission-sig": base64.b64encode(sig).decode("ascii"),
            "paypal-cert-url": cert_url,
            "paypal-auth-algo": "SHA256withRSA",
            "Content-Type": "application/json",
        }


@pytest.fixture(scope="session")
def _paypal_signer() -> PaypalSigner:
    # RSA key generation is slow; one key per session
    return PaypalSigner()


@pytest.fixture
def paypal_signer(_paypal_signer, monkeypatch) -> PaypalSigner:
    import app.providers.paypal as paypal

    monkeypatch.setattr(settings, "PAYPAL_WEBHOOK_ID", PAYPAL_WEBHOOK_ID, raising=False)
    monkeypatch.setattr(paypal, "fetch_certificate", lambda cert_url: _paypal_signer.cert_pem)
    return _paypal_signer


def payout_event(event_type: str, payout_id: str, *, invoice_id: str = "inv_1",
                 item_id: str = "5UXD2E8A7EBQJ") -> dict:
    return {
        "id": "WH-0LU96374HX4547523-5XH02372AU9736430",
        "event_type": event_type,
        "resource": {
            "sender_batch_id": invoice_id,
            "payout_item_id": item_id,
            "payout_item_fee": {"currency": "USD", "value": "0.25"},
            "payout_item": {"receiver": "ada@example.com", "sender_item_id": payout_id},
        },
    }


# ---------------------------
# Real database (skipped when DATABASE_URL is not reachable)
# ---------------------------

@pytest.fixture
def pg_conn():
    try:
        conn = psycopg2.connect(settings.DATABASE_URL, connect_timeout=2)
    except psycopg2.OperationalError:
        pytest.skip("database not reachable")
    try:
        with conn.cursor() as cur:
            cur.execute("SELECT to_regclass('app.payouts'), to_regclass('app.links')")
            if None in cur.fetchone():
                pytest.skip("schema not migrated")
        yield conn
    finally:
        conn.rollback()
        conn.close()
