"""Create financial accounts, movements, prepaid cards and rendiciones

Revision ID: a1f3c9d20b71
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = 'a1f3c9d20b71'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

OPEN_RENDICION = sa.text("status IN ('abierta', 'cerrada')")


def upgrade() -> None:
    # ── financial_accounts ────────────────────────────
    op.create_table(
        'financial_accounts',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('name', sa.String(100), nullable=False),
        sa.Column(
            'account_type',
            sa.Enum(
                'caja_chica', 'cuenta_corriente', 'caja_ahorro',
                'billetera_virtual', 'inversion', 'tarjeta',
                name='accounttype',
            ),
            nullable=False,
        ),
        sa.Column('bank_name', sa.String(100), nullable=True),
        sa.Column('account_number', sa.String(50), nullable=True),
        sa.Column('cbu', sa.String(30), nullable=True),
        sa.Column('alias', sa.String(50), nullable=True),
        sa.Column('currency', sa.String(3), nullable=False, server_default='ARS'),
        sa.Column('opening_balance', sa.Numeric(14, 2), nullable=False, server_default='0'),
        sa.Column('current_balance', sa.Numeric(14, 2), nullable=False, server_default='0'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index('idx_account_active', 'financial_accounts', ['is_active'])

    # ── prepaid_cards ─────────────────────────────────
    op.create_table(
        'prepaid_cards',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            'card_type',
            sa.Enum('precargable', 'corporativa', name='cardtype'),
            nullable=False,
        ),
        sa.Column(
            'status',
            sa.Enum('activa', 'suspendida', 'baja', name='cardstatus'),
            nullable=False,
            server_default='activa',
        ),
        sa.Column('alias', sa.String(100), nullable=True),
        sa.Column('card_number', sa.String(30), nullable=True),
        sa.Column('account_id', sa.Integer(), sa.ForeignKey('financial_accounts.id'), nullable=False),
        sa.Column('employee_id', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('deleted_at', sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index('idx_card_employee', 'prepaid_cards', ['employee_id'])
    op.create_index('idx_card_number', 'prepaid_cards', ['card_number'])

    # ── rendiciones ───────────────────────────────────
    op.create_table(
        'rendiciones',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('code', sa.String(20), nullable=True, unique=True),
        sa.Column('card_id', sa.Integer(), sa.ForeignKey('prepaid_cards.id'), nullable=False),
        sa.Column('date_from', sa.Date(), nullable=False),
        sa.Column('date_to', sa.Date(), nullable=False),
        sa.Column('total_amount', sa.Numeric(14, 2), nullable=False, server_default='0'),
        sa.Column('expense_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column(
            'status',
            sa.Enum('abierta', 'cerrada', 'aprobada', 'rechazada', name='rendicionstatus'),
            nullable=False,
            server_default='abierta',
        ),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('rejection_reason', sa.Text(), nullable=True),
        sa.Column('created_by', sa.Integer(), nullable=False),
        sa.Column('approved_by', sa.Integer(), nullable=True),
        sa.Column('approved_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index('idx_rendicion_card_status', 'rendiciones', ['card_id', 'status'])
    # A lo sumo una rendición abierta o cerrada por tarjeta
    op.create_index(
        'uq_rendicion_open_per_card', 'rendiciones', ['card_id'],
        unique=True,
        postgresql_where=OPEN_RENDICION,
        sqlite_where=OPEN_RENDICION,
    )

    # ── movements ─────────────────────────────────────
    op.create_table(
        'movements',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('account_id', sa.Integer(), sa.ForeignKey('financial_accounts.id'), nullable=False),
        sa.Column(
            'movement_type',
            sa.Enum('income', 'expense', name='movementtype'),
            nullable=False,
        ),
        sa.Column(
            'category',
            sa.Enum(
                'cobro_factura', 'anticipo_cliente', 'reintegro',
                'transferencia_entrada', 'carga_tarjeta', 'otro_ingreso',
                'materiales', 'mano_de_obra', 'subcontratista', 'combustible',
                'viaticos', 'servicios', 'impuestos', 'herramientas',
                'transferencia_salida', 'gasto_tarjeta', 'otro_egreso',
                name='movementcategory',
            ),
            nullable=True,
        ),
        sa.Column(
            'payment_method',
            sa.Enum(
                'efectivo', 'transferencia', 'cheque', 'echeq',
                'tarjeta_debito', 'tarjeta_credito', 'mercadopago',
                name='paymentmethod',
            ),
            nullable=False,
            server_default='transferencia',
        ),
        sa.Column('amount', sa.Numeric(14, 2), nullable=False),
        sa.Column('description', sa.String(500), nullable=False),
        sa.Column('voucher', sa.String(100), nullable=True),
        sa.Column('movement_date', sa.Date(), nullable=False),
        sa.Column(
            'status',
            sa.Enum('pending', 'confirmed', 'voided', name='movementstatus'),
            nullable=False,
            server_default='confirmed',
        ),
        sa.Column('employee_id', sa.Integer(), nullable=True),
        sa.Column('transfer_ref', sa.String(40), nullable=True),
        sa.Column('rendicion_id', sa.Integer(), sa.ForeignKey('rendiciones.id'), nullable=True),
        sa.Column('void_reason', sa.Text(), nullable=True),
        sa.Column('created_by', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index('idx_movement_account_status', 'movements', ['account_id', 'status'])
    op.create_index('idx_movement_date', 'movements', ['movement_date'])
    op.create_index('idx_movement_transfer_ref', 'movements', ['transfer_ref'])

    # ── card_top_ups ──────────────────────────────────
    op.create_table(
        'card_top_ups',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('card_id', sa.Integer(), sa.ForeignKey('prepaid_cards.id'), nullable=False),
        sa.Column('amount', sa.Numeric(14, 2), nullable=False),
        sa.Column('top_up_date', sa.Date(), nullable=False),
        sa.Column('description', sa.String(500), nullable=True),
        sa.Column('voucher', sa.String(100), nullable=True),
        sa.Column('movement_id', sa.Integer(), sa.ForeignKey('movements.id'), nullable=False, unique=True),
        sa.Column('registered_by', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index('idx_top_up_card_date', 'card_top_ups', ['card_id', 'top_up_date'])

    # ── card_expenses ─────────────────────────────────
    op.create_table(
        'card_expenses',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('card_id', sa.Integer(), sa.ForeignKey('prepaid_cards.id'), nullable=False),
        sa.Column(
            'category',
            sa.Enum(
                'gas', 'ferreteria', 'estacionamiento', 'lavadero', 'nafta',
                'repuestos', 'materiales_electricos', 'peajes', 'comida',
                'herramientas', 'otro',
                name='expensecategory',
            ),
            nullable=False,
            server_default='otro',
        ),
        sa.Column('category_other', sa.String(100), nullable=True),
        sa.Column('amount', sa.Numeric(14, 2), nullable=False),
        sa.Column('expense_date', sa.Date(), nullable=False),
        sa.Column('concept', sa.Text(), nullable=False),
        sa.Column('movement_id', sa.Integer(), sa.ForeignKey('movements.id'), nullable=False, unique=True),
        sa.Column('rendicion_id', sa.Integer(), sa.ForeignKey('rendiciones.id'), nullable=True),
        sa.Column('registered_by', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index('idx_expense_card_date', 'card_expenses', ['card_id', 'expense_date'])
    op.create_index('idx_expense_rendicion', 'card_expenses', ['rendicion_id'])


def downgrade() -> None:
    op.drop_table('card_expenses')
    op.drop_table('card_top_ups')
    op.drop_table('movements')
    op.drop_table('rendiciones')
    op.drop_table('prepaid_cards')
    op.drop_table('financial_accounts')

    for enum_name in (
        'expensecategory', 'movementstatus', 'paymentmethod', 'movementcategory',
        'movementtype', 'rendicionstatus', 'cardstatus', 'cardtype', 'accounttype',
    ):
        sa.Enum(name=enum_name).drop(op.get_bind(), checkfirst=True)
