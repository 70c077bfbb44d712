"""init_settlement_schema

Revision ID: 0001
Revises:
Create Date: 2026-10-19

Schema:
- user / profile: marketplace accounts and their payout wallet
- organizer / category: event ownership and catalogue
- event: face value plus tickets_available / tickets_sold counters
- order: primary purchases and their mint retry bookkeeping
- ticket: one row per minted unit, unique per (order_id, unit_index)
- listing: resale offers, at most one open (active / awaiting_confirmation) per NFT
- payment_distribution / resale_distribution: recorded revenue splits
- platform_config: runtime fee and wallet settings
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '0001'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

AMOUNT = sa.Numeric(20, 9)
OPEN_LISTING = sa.text("status IN ('active', 'awaiting_confirmation')")


def _timestamps(*, with_updated_at: bool = True) -> list[sa.Column]:
    columns = [
        sa.Column(
            'created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False
        )
    ]
    if with_updated_at:
        columns.append(
            sa.Column(
                'updated_at',
                sa.DateTime(timezone=True),
                server_default=sa.func.now(),
                nullable=False,
            )
        )
    return columns


def upgrade() -> None:
    # ========== Accounts ==========
    op.create_table(
        'user',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('email', sa.String(255), nullable=False, unique=True),
        sa.Column('name', sa.String(255), nullable=True),
        sa.Column('wallet_address', sa.String(64), nullable=True, unique=True),
        *_timestamps(with_updated_at=False),
    )
    op.create_table(
        'profile',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('user_id', sa.Uuid(), sa.ForeignKey('user.id'), nullable=False, unique=True),
        sa.Column('bio', sa.Text(), nullable=True),
        sa.Column('avatar_url', sa.String(512), nullable=True),
    )
    op.create_table(
        'organizer',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('user_id', sa.Uuid(), sa.ForeignKey('user.id'), nullable=False, unique=True),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('wallet_address', sa.String(64), nullable=True),
    )
    op.create_table(
        'category',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('name', sa.String(100), nullable=False, unique=True),
    )

    # ========== Events ==========
    op.create_table(
        'event',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('title', sa.String(255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('date', sa.DateTime(timezone=True), nullable=False),
        sa.Column('location', sa.String(255), nullable=True),
        sa.Column('price', AMOUNT, nullable=False),
        sa.Column('tickets_available', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('tickets_sold', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('organizer_id', sa.Uuid(), sa.ForeignKey('organizer.id'), nullable=True),
        sa.Column('category_id', sa.Uuid(), sa.ForeignKey('category.id'), nullable=True),
        *_timestamps(with_updated_at=False),
        sa.CheckConstraint(
            'tickets_available >= 0', name='ck_event_tickets_available_non_negative'
        ),
        sa.CheckConstraint('tickets_sold >= 0', name='ck_event_tickets_sold_non_negative'),
    )
    op.create_index('ix_event_organizer_id', 'event', ['organizer_id'])

    # ========== Orders & Tickets ==========
    op.create_table(
        'order',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('event_id', sa.Uuid(), sa.ForeignKey('event.id'), nullable=False),
        sa.Column('user_id', sa.Uuid(), sa.ForeignKey('user.id'), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('total_price', AMOUNT, nullable=False),
        sa.Column('status', sa.String(20), nullable=False, server_default='pending'),
        sa.Column('transaction_hash', sa.String(128), nullable=True),
        sa.Column('nft_mint_address', sa.String(64), nullable=True),
        sa.Column('mint_attempts', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('next_attempt_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('last_error', sa.Text(), nullable=True),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.Column('paid_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('completed_at', sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index('ix_order_event_id', 'order', ['event_id'])
    op.create_index('ix_order_user_id', 'order', ['user_id'])
    op.create_index('ix_order_status', 'order', ['status'])
    op.create_index('ix_order_transaction_hash', 'order', ['transaction_hash'])

    op.create_table(
        'ticket',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('order_id', sa.Uuid(), sa.ForeignKey('order.id'), nullable=False),
        sa.Column('event_id', sa.Uuid(), sa.ForeignKey('event.id'), nullable=False),
        sa.Column('owner_id', sa.Uuid(), sa.ForeignKey('user.id'), nullable=False),
        sa.Column('unit_index', sa.Integer(), nullable=False),
        sa.Column('token_id', sa.Integer(), nullable=False),
        sa.Column('nft_mint_address', sa.String(64), nullable=False, unique=True),
        sa.Column('mint_transaction_hash', sa.String(128), nullable=True),
        sa.Column('mint_status', sa.String(20), nullable=False, server_default='pending'),
        sa.Column('is_valid', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('is_used', sa.Boolean(), nullable=False, server_default=sa.false()),
        *_timestamps(),
        sa.UniqueConstraint('order_id', 'unit_index', name='uq_ticket_order_unit'),
    )
    op.create_index('ix_ticket_order_id', 'ticket', ['order_id'])
    op.create_index('ix_ticket_event_id', 'ticket', ['event_id'])
    op.create_index('ix_ticket_owner_id', 'ticket', ['owner_id'])
    op.create_index('ix_ticket_mint_transaction_hash', 'ticket', ['mint_transaction_hash'])

    # ========== Marketplace ==========
    op.create_table(
        'listing',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('ticket_id', sa.Uuid(), sa.ForeignKey('ticket.id'), nullable=False),
        sa.Column('nft_mint_address', sa.String(64), nullable=False),
        sa.Column('seller_id', sa.Uuid(), sa.ForeignKey('user.id'), nullable=False),
        sa.Column('price', AMOUNT, nullable=False),
        sa.Column('original_price', AMOUNT, nullable=False),
        sa.Column('status', sa.String(32), nullable=False, server_default='active'),
        sa.Column('seller_signature', sa.Text(), nullable=False),
        sa.Column('listing_address', sa.String(64), nullable=True, unique=True),
        sa.Column('sold_to', sa.Uuid(), sa.ForeignKey('user.id'), nullable=True),
        sa.Column('sold_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('transaction_hash', sa.String(128), nullable=True),
        sa.Column('pending_buyer_id', sa.Uuid(), sa.ForeignKey('user.id'), nullable=True),
        sa.Column('pending_transaction_hash', sa.String(128), nullable=True),
        sa.Column('confirmation_attempts', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('next_check_at', sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
    )
    op.create_index('ix_listing_ticket_id', 'listing', ['ticket_id'])
    op.create_index('ix_listing_nft_mint_address', 'listing', ['nft_mint_address'])
    op.create_index('ix_listing_seller_id', 'listing', ['seller_id'])
    op.create_index('ix_listing_status', 'listing', ['status'])
    op.create_index('ix_listing_pending_transaction_hash', 'listing', ['pending_transaction_hash'])
    op.create_index(
        'uq_listing_open_nft',
        'listing',
        ['nft_mint_address'],
        unique=True,
        postgresql_where=OPEN_LISTING,
        sqlite_where=OPEN_LISTING,
    )

    # ========== Settlement ==========
    op.create_table(
        'payment_distribution',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('order_id', sa.Uuid(), sa.ForeignKey('order.id'), nullable=False, unique=True),
        sa.Column('total_amount', AMOUNT, nullable=False),
        sa.Column('organizer_share', AMOUNT, nullable=False),
        sa.Column('platform_share', AMOUNT, nullable=False),
        sa.Column('organizer_wallet', sa.String(64), nullable=True),
        sa.Column('platform_wallet', sa.String(64), nullable=False),
        sa.Column('transaction_hash', sa.String(128), nullable=True),
        sa.Column('status', sa.String(20), nullable=False, server_default='completed'),
        *_timestamps(with_updated_at=False),
        sa.CheckConstraint('organizer_share >= 0', name='ck_payment_distribution_organizer_share'),
        sa.CheckConstraint('platform_share >= 0', name='ck_payment_distribution_platform_share'),
    )
    op.create_table(
        'resale_distribution',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column(
            'listing_id', sa.Uuid(), sa.ForeignKey('listing.id'), nullable=False, unique=True
        ),
        sa.Column('total_amount', AMOUNT, nullable=False),
        sa.Column('seller_share', AMOUNT, nullable=False),
        sa.Column('platform_share', AMOUNT, nullable=False),
        sa.Column('seller_wallet', sa.String(64), nullable=True),
        sa.Column('platform_wallet', sa.String(64), nullable=False),
        sa.Column('transaction_hash', sa.String(128), nullable=True),
        sa.Column('status', sa.String(20), nullable=False, server_default='completed'),
        *_timestamps(with_updated_at=False),
        sa.CheckConstraint('seller_share >= 0', name='ck_resale_distribution_seller_share'),
        sa.CheckConstraint('platform_share >= 0', name='ck_resale_distribution_platform_share'),
    )
    op.create_table(
        'platform_config',
        sa.Column('key', sa.String(100), primary_key=True),
        sa.Column('value', sa.Text(), nullable=False),
        sa.Column(
            'updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False
        ),
    )


def downgrade() -> None:
    op.drop_table('platform_config')
    op.drop_table('resale_distribution')
    op.drop_table('payment_distribution')
    op.drop_index('uq_listing_open_nft', table_name='listing')
    op.drop_table('listing')
    op.drop_table('ticket')
    op.drop_table('order')
    op.drop_table('event')
    op.drop_table('category')
    op.drop_table('organizer')
    op.drop_table('profile')
    op.drop_table('user')
