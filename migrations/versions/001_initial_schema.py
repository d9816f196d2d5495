"""Initial schema: tokens, migrating, trades and their insert functions.

Revision ID: 001
Revises:
Create Date: 2026-10-19

The insert functions take p_-prefixed named parameters so they can be
called both through Supabase RPC and directly over asyncpg. Uniqueness is
enforced here; duplicate inserts are ignored.
"""
from typing import Sequence, Union

from alembic import op

revision: str = '001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # New tokens (one row per mint)
    op.execute("""
        CREATE TABLE IF NOT EXISTS tokens (
            id BIGSERIAL PRIMARY KEY,
            signature TEXT,
            mint_address TEXT NOT NULL UNIQUE,
            trader_public_key TEXT,
            tx_type TEXT,
            initial_buy DOUBLE PRECISION,
            sol_amount DOUBLE PRECISION,
            bonding_curve_key TEXT,
            v_tokens_in_bonding_curve DOUBLE PRECISION,
            v_sol_in_bonding_curve DOUBLE PRECISION,
            market_cap_sol DOUBLE PRECISION,
            name TEXT NOT NULL,
            symbol TEXT NOT NULL DEFAULT 'UNKNOWN',
            uri TEXT,
            pool TEXT,
            description TEXT DEFAULT 'N/A',
            twitter TEXT DEFAULT 'N/A',
            telegram TEXT DEFAULT 'N/A',
            website TEXT DEFAULT 'N/A',
            image TEXT DEFAULT 'N/A',
            timestamp BIGINT NOT NULL,
            created_at TIMESTAMPTZ DEFAULT NOW()
        )
    """)

    # Raydium migrations
    op.execute("""
        CREATE TABLE IF NOT EXISTS migrating (
            id BIGSERIAL PRIMARY KEY,
            signature TEXT,
            mint_address TEXT,
            tx_type TEXT,
            market_id TEXT,
            market_cap_sol DOUBLE PRECISION,
            price DOUBLE PRECISION,
            pool TEXT NOT NULL,
            timestamp BIGINT NOT NULL,
            created_at TIMESTAMPTZ DEFAULT NOW(),
            UNIQUE(signature, mint_address)
        )
    """)

    # Trades
    op.execute("""
        CREATE TABLE IF NOT EXISTS trades (
            id BIGSERIAL PRIMARY KEY,
            signature TEXT NOT NULL,
            mint_address TEXT,
            trader_public_key TEXT,
            tx_type TEXT NOT NULL,
            initial_buy DOUBLE PRECISION DEFAULT 0,
            sol_amount DOUBLE PRECISION,
            bonding_curve_key TEXT,
            v_tokens_in_bonding_curve DOUBLE PRECISION,
            v_sol_in_bonding_curve DOUBLE PRECISION,
            market_cap_sol DOUBLE PRECISION,
            name TEXT,
            symbol TEXT DEFAULT 'UNKNOWN',
            uri TEXT,
            pool TEXT,
            timestamp BIGINT NOT NULL,
            token_amount DOUBLE PRECISION DEFAULT 0,
            new_token_balance DOUBLE PRECISION DEFAULT 0,
            created_at TIMESTAMPTZ DEFAULT NOW(),
            UNIQUE(signature, mint_address)
        )
    """)

    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_trades_mint
        ON trades(mint_address, timestamp DESC)
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_migrating_mint
        ON migrating(mint_address)
    """)

    op.execute("""
        CREATE OR REPLACE FUNCTION insert_token_with_prefix(
            p_signature TEXT,
            p_mint_address TEXT,
            p_trader_public_key TEXT,
            p_tx_type TEXT,
            p_initial_buy DOUBLE PRECISION,
            p_sol_amount DOUBLE PRECISION,
            p_bonding_curve_key TEXT,
            p_v_tokens_in_bonding_curve DOUBLE PRECISION,
            p_v_sol_in_bonding_curve DOUBLE PRECISION,
            p_market_cap_sol DOUBLE PRECISION,
            p_name TEXT,
            p_symbol TEXT,
            p_uri TEXT,
            p_pool TEXT,
            p_description TEXT,
            p_twitter TEXT,
            p_telegram TEXT,
            p_website TEXT,
            p_image TEXT,
            p_timestamp BIGINT
        ) RETURNS VOID AS $$
        BEGIN
            INSERT INTO tokens (
                signature, mint_address, trader_public_key, tx_type,
                initial_buy, sol_amount, bonding_curve_key,
                v_tokens_in_bonding_curve, v_sol_in_bonding_curve,
                market_cap_sol, name, symbol, uri, pool,
                description, twitter, telegram, website, image, timestamp
            ) VALUES (
                p_signature, p_mint_address, p_trader_public_key, p_tx_type,
                p_initial_buy, p_sol_amount, p_bonding_curve_key,
                p_v_tokens_in_bonding_curve, p_v_sol_in_bonding_curve,
                p_market_cap_sol, p_name, p_symbol, p_uri, p_pool,
                p_description, p_twitter, p_telegram, p_website, p_image, p_timestamp
            )
            ON CONFLICT (mint_address) DO NOTHING;
        END;
        $$ LANGUAGE plpgsql
    """)

    op.execute("""
        CREATE OR REPLACE FUNCTION insert_migrating_with_prefix(
            p_signature TEXT,
            p_mint_address TEXT,
            p_tx_type TEXT,
            p_market_id TEXT,
            p_market_cap_sol DOUBLE PRECISION,
            p_price DOUBLE PRECISION,
            p_pool TEXT,
            p_timestamp BIGINT
        ) RETURNS VOID AS $$
        BEGIN
            INSERT INTO migrating (
                signature, mint_address, tx_type, market_id,
                market_cap_sol, price, pool, timestamp
            ) VALUES (
                p_signature, p_mint_address, p_tx_type, p_market_id,
                p_market_cap_sol, p_price, p_pool, p_timestamp
            )
            ON CONFLICT (signature, mint_address) DO NOTHING;
        END;
        $$ LANGUAGE plpgsql
    """)

    op.execute("""
        CREATE OR REPLACE FUNCTION insert_trade_with_prefix(
            p_signature TEXT,
            p_mint_address TEXT,
            p_trader_public_key TEXT,
            p_tx_type TEXT,
            p_initial_buy DOUBLE PRECISION,
            p_sol_amount DOUBLE PRECISION,
            p_bonding_curve_key TEXT,
            p_v_tokens_in_bonding_curve DOUBLE PRECISION,
            p_v_sol_in_bonding_curve DOUBLE PRECISION,
            p_market_cap_sol DOUBLE PRECISION,
            p_name TEXT,
            p_symbol TEXT,
            p_uri TEXT,
            p_pool TEXT,
            p_timestamp BIGINT,
            p_token_amount DOUBLE PRECISION,
            p_new_token_balance DOUBLE PRECISION
        ) RETURNS VOID AS $$
        BEGIN
            INSERT INTO trades (
                signature, mint_address, trader_public_key, tx_type,
                initial_buy, sol_amount, bonding_curve_key,
                v_tokens_in_bonding_curve, v_sol_in_bonding_curve,
                market_cap_sol, name, symbol, uri, pool, timestamp,
                token_amount, new_token_balance
            ) VALUES (
                p_signature, p_mint_address, p_trader_public_key, p_tx_type,
                p_initial_buy, p_sol_amount, p_bonding_curve_key,
                p_v_tokens_in_bonding_curve, p_v_sol_in_bonding_curve,
                p_market_cap_sol, p_name, p_symbol, p_uri, p_pool, p_timestamp,
                p_token_amount, p_new_token_balance
            )
            ON CONFLICT (signature, mint_address) DO NOTHING;
        END;
        $$ LANGUAGE plpgsql
    """)


def downgrade() -> None:
    op.execute("DROP FUNCTION IF EXISTS insert_trade_with_prefix")
    op.execute("DROP FUNCTION IF EXISTS insert_migrating_with_prefix")
    op.execute("DROP FUNCTION IF EXISTS insert_token_with_prefix")
    op.execute("DROP TABLE IF EXISTS trades CASCADE")
    op.execute("DROP TABLE IF EXISTS migrating CASCADE")
    op.execute("DROP TABLE IF EXISTS tokens CASCADE")
