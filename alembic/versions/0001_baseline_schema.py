"""baseline schema

Revision ID: 0001_baseline_schema
Revises:
Create Date: 2026-10-19 00:00:00.000000

"""

from __future__ import annotations

from alembic import op


revision = "0001_baseline_schema"
down_revision = None
branch_labels = None
depends_on = None


SCHEMA_SQL = """
CREATE SCHEMA IF NOT EXISTS app;

CREATE TABLE IF NOT EXISTS app.workspaces (
  id text PRIMARY KEY,
  name text NOT NULL,
  slug text NOT NULL UNIQUE,
  plan text NOT NULL DEFAULT 'free',
  stripe_id text UNIQUE,
  invoice_prefix text,
  default_program_id text,
  created_at timestamptz NOT NULL DEFAULT now(),
  updated_at timestamptz NOT NULL DEFAULT now()
);

CREATE TABLE IF NOT EXISTS app.workspace_users (
  workspace_id text NOT NULL REFERENCES app.workspaces(id) ON DELETE CASCADE,
  user_id text NOT NULL,
  role text NOT NULL DEFAULT 'member' CHECK (role IN ('owner', 'member')),
  created_at timestamptz NOT NULL DEFAULT now(),
  PRIMARY KEY (workspace_id, user_id)
);

CREATE TABLE IF NOT EXISTS app.programs (
  id text PRIMARY KEY,
  workspace_id text NOT NULL REFERENCES app.workspaces(id) ON DELETE CASCADE,
  name text NOT NULL,
  logo text,
  min_payout_amount integer NOT NULL DEFAULT 10000 CHECK (min_payout_amount >= 0),
  default_reward_id text,
  created_at timestamptz NOT NULL DEFAULT now(),
  updated_at timestamptz NOT NULL DEFAULT now()
);

CREATE TABLE IF NOT EXISTS app.partners (
  id text PRIMARY KEY,
  name text NOT NULL,
  email text UNIQUE,
  image text,
  payouts_enabled_at timestamptz,
  created_at timestamptz NOT NULL DEFAULT now(),
  updated_at timestamptz NOT NULL DEFAULT now()
);

CREATE TABLE IF NOT EXISTS app.program_enrollments (
  id text PRIMARY KEY,
  program_id text NOT NULL REFERENCES app.programs(id) ON DELETE CASCADE,
  partner_id text NOT NULL REFERENCES app.partners(id) ON DELETE CASCADE,
  status text NOT NULL DEFAULT 'pending'
    CHECK (status IN ('pending', 'approved', 'rejected', 'banned')),
  created_at timestamptz NOT NULL DEFAULT now(),
  CONSTRAINT program_enrollments_partner_program_key UNIQUE (partner_id, program_id)
);

CREATE TABLE IF NOT EXISTS app.links (
  id text PRIMARY KEY,
  program_id text REFERENCES app.programs(id) ON DELETE SET NULL,
  partner_id text REFERENCES app.partners(id) ON DELETE SET NULL,
  url text NOT NULL,
  clicks integer NOT NULL DEFAULT 0,
  leads integer NOT NULL DEFAULT 0,
  sales integer NOT NULL DEFAULT 0,
  sale_amount integer NOT NULL DEFAULT 0,
  created_at timestamptz NOT NULL DEFAULT now()
);
CREATE INDEX IF NOT EXISTS links_program_partner_idx ON app.links (program_id, partner_id);

CREATE TABLE IF NOT EXISTS app.invoices (
  id text PRIMARY KEY,
  number text NOT NULL,
  workspace_id text NOT NULL REFERENCES app.workspaces(id) ON DELETE CASCADE,
  program_id text NOT NULL REFERENCES app.programs(id) ON DELETE CASCADE,
  amount integer NOT NULL CHECK (amount >= 0),
  fee integer NOT NULL CHECK (fee >= 0),
  total integer NOT NULL CHECK (total >= 0),
  created_at timestamptz NOT NULL DEFAULT now(),
  CONSTRAINT invoices_workspace_number_key UNIQUE (workspace_id, number)
);

CREATE TABLE IF NOT EXISTS app.payouts (
  id text PRIMARY KEY,
  program_id text NOT NULL REFERENCES app.programs(id) ON DELETE CASCADE,
  partner_id text NOT NULL REFERENCES app.partners(id) ON DELETE CASCADE,
  invoice_id text CONSTRAINT payouts_invoice_id_fkey REFERENCES app.invoices(id),
  user_id text,
  amount integer NOT NULL DEFAULT 0 CHECK (amount >= 0),
  status text NOT NULL DEFAULT 'pending'
    CHECK (status IN ('pending', 'processing', 'completed', 'failed', 'canceled')),
  paypal_transfer_id text UNIQUE,
  period_start timestamptz,
  period_end timestamptz,
  paid_at timestamptz,
  created_at timestamptz NOT NULL DEFAULT now(),
  updated_at timestamptz NOT NULL DEFAULT now()
);
CREATE INDEX IF NOT EXISTS payouts_program_status_idx ON app.payouts (program_id, status);
CREATE INDEX IF NOT EXISTS payouts_invoice_idx ON app.payouts (invoice_id);

CREATE TABLE IF NOT EXISTS app.commissions (
  id text PRIMARY KEY,
  program_id text NOT NULL REFERENCES app.programs(id) ON DELETE CASCADE,
  partner_id text NOT NULL REFERENCES app.partners(id) ON DELETE CASCADE,
  payout_id text REFERENCES app.payouts(id) ON DELETE SET NULL,
  amount integer NOT NULL DEFAULT 0,
  earnings integer NOT NULL DEFAULT 0,
  status text NOT NULL DEFAULT 'pending'
    CHECK (status IN ('pending', 'processed', 'paid', 'refunded', 'duplicate', 'fraud')),
  created_at timestamptz NOT NULL DEFAULT now(),
  updated_at timestamptz NOT NULL DEFAULT now()
);
CREATE INDEX IF NOT EXISTS commissions_payout_idx ON app.commissions (payout_id);

CREATE TABLE IF NOT EXISTS app.rewards (
  id text PRIMARY KEY,
  program_id text NOT NULL CONSTRAINT rewards_program_id_fkey REFERENCES app.programs(id) ON DELETE CASCADE,
  event text NOT NULL CHECK (event IN ('click', 'lead', 'sale')),
  type text NOT NULL DEFAULT 'flat' CHECK (type IN ('flat', 'percentage')),
  amount integer NOT NULL DEFAULT 0 CHECK (amount >= 0),
  max_duration integer,
  max_amount integer CHECK (max_amount IS NULL OR max_amount >= 0),
  created_at timestamptz NOT NULL DEFAULT now(),
  updated_at timestamptz NOT NULL DEFAULT now()
);
CREATE INDEX IF NOT EXISTS rewards_program_event_idx ON app.rewards (program_id, event);

CREATE TABLE IF NOT EXISTS app.partner_rewards (
  reward_id text NOT NULL REFERENCES app.rewards(id) ON DELETE CASCADE,
  partner_id text NOT NULL REFERENCES app.partners(id) ON DELETE CASCADE,
  CONSTRAINT partner_rewards_pkey PRIMARY KEY (reward_id, partner_id)
);
"""


def upgrade() -> None:
    op.execute(SCHEMA_SQL)


def downgrade() -> None:
    op.execute(
        """
        DROP TABLE IF EXISTS app.partner_rewards;
        DROP TABLE IF EXISTS app.rewards;
        DROP TABLE IF EXISTS app.commissions;
        DROP TABLE IF EXISTS app.payouts;
        DROP TABLE IF EXISTS app.invoices;
        DROP TABLE IF EXISTS app.links;
        DROP TABLE IF EXISTS app.program_enrollments;
        DROP TABLE IF EXISTS app.partners;
        DROP TABLE IF EXISTS app.programs;
        DROP TABLE IF EXISTS app.workspace_users;
        DROP TABLE IF EXISTS app.workspaces;
        """
    )
