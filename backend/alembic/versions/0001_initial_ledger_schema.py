"""Initial ledger schema: catalog, stock ledger, events, lots, costing, audit.

Revision ID: 0001
Revises:
Create Date: 2026-10-19
"""

revision = "0001"
down_revision = None
branch_labels = None
depends_on = None

from alembic import op
import sqlalchemy as sa


def upgrade() -> None:
    # ── Catalog ──────────────────────────────────────────────
    op.create_table(
        "ingredients",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("description", sa.Text()),
        sa.Column("unit", sa.String(30), nullable=False),
        # Stock (projection of the ledger)
        sa.Column("current_stock", sa.Numeric(12, 3), server_default="0"),
        sa.Column("min_stock", sa.Numeric(12, 3), server_default="0"),
        sa.Column("max_stock", sa.Numeric(12, 3)),
        sa.Column("reorder_point", sa.Numeric(12, 3)),
        # Cost (written by the costing policy only)
        sa.Column("cost_per_unit", sa.Numeric(12, 4)),
        sa.Column("cost_needs_review", sa.Boolean(), server_default="false"),
        sa.Column("cost_updated_at", sa.DateTime()),
        sa.Column("supplier", sa.String(200)),
        sa.Column("storage_location", sa.String(200)),
        sa.Column("is_active", sa.Boolean(), server_default="true"),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(), server_default=sa.func.now()),
    )
    op.create_index("ix_ingredients_name", "ingredients", ["name"], unique=True)
    op.create_index("ix_ingredients_is_active", "ingredients", ["is_active"])

    op.create_table(
        "menus",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("menu_code", sa.String(30), nullable=False),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("description", sa.Text()),
        sa.Column("price", sa.Numeric(12, 2), nullable=False),
        sa.Column("cost_price", sa.Numeric(12, 4)),
        sa.Column("profit", sa.Numeric(12, 4)),
        sa.Column("profit_margin", sa.Numeric(8, 4)),
        sa.Column("cost_updated_at", sa.DateTime()),
        sa.Column("is_active", sa.Boolean(), server_default="true"),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(), server_default=sa.func.now()),
    )
    op.create_index("ix_menus_menu_code", "menus", ["menu_code"], unique=True)

    op.create_table(
        "menu_recipes",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("menu_id", sa.String(36), sa.ForeignKey("menus.id"), nullable=False),
        sa.Column("ingredient_id", sa.String(36), sa.ForeignKey("ingredients.id"), nullable=False),
        sa.Column("quantity_per_serve", sa.Numeric(12, 3), nullable=False),
        sa.Column("unit", sa.String(30), nullable=False),
        sa.Column("is_optional", sa.Boolean(), server_default="false"),
        sa.Column("notes", sa.Text()),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now()),
        sa.UniqueConstraint("menu_id", "ingredient_id"),
    )
    op.create_index("ix_menu_recipes_menu_id", "menu_recipes", ["menu_id"])
    op.create_index("ix_menu_recipes_ingredient_id", "menu_recipes", ["ingredient_id"])

    # ── Business events ──────────────────────────────────────
    op.create_table(
        "purchases",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("ingredient_id", sa.String(36), sa.ForeignKey("ingredients.id"), nullable=False),
        sa.Column("quantity", sa.Numeric(12, 3), nullable=False),
        sa.Column("unit", sa.String(30), nullable=False),
        sa.Column("unit_price", sa.Numeric(12, 4)),
        sa.Column("total_amount", sa.Numeric(12, 2)),
        sa.Column("vendor", sa.String(200), nullable=False),
        sa.Column("vendor_invoice", sa.String(100)),
        sa.Column("purchase_date", sa.Date(), nullable=False),
        sa.Column("notes", sa.Text()),
        sa.Column("recorded_by", sa.String(100), nullable=False),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now()),
    )
    op.create_index("ix_purchases_ingredient_id", "purchases", ["ingredient_id"])
    op.create_index("ix_purchases_purchase_date", "purchases", ["purchase_date"])

    op.create_table(
        "sales",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("menu_id", sa.String(36), sa.ForeignKey("menus.id"), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("unit_price", sa.Numeric(12, 2), nullable=False),
        sa.Column("total_amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("order_date", sa.Date(), nullable=False),
        sa.Column("notes", sa.Text()),
        sa.Column("recorded_by", sa.String(100), nullable=False),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now()),
    )
    op.create_index("ix_sales_menu_id", "sales", ["menu_id"])
    op.create_index("ix_sales_order_date", "sales", ["order_date"])

    op.create_table(
        "stock_adjustments",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("ingredient_id", sa.String(36), sa.ForeignKey("ingredients.id"), nullable=False),
        sa.Column("previous_stock", sa.Numeric(12, 3), nullable=False),
        sa.Column("new_stock", sa.Numeric(12, 3), nullable=False),
        sa.Column("quantity_change", sa.Numeric(12, 3), nullable=False),
        sa.Column("unit", sa.String(30), nullable=False),
        sa.Column("reason", sa.Text(), nullable=False),
        sa.Column("recorded_by", sa.String(100), nullable=False),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now()),
    )
    op.create_index("ix_stock_adjustments_ingredient_id", "stock_adjustments", ["ingredient_id"])

    op.create_table(
        "waste",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("ingredient_id", sa.String(36), sa.ForeignKey("ingredients.id"), nullable=False),
        sa.Column("quantity", sa.Numeric(12, 3), nullable=False),
        sa.Column("unit", sa.String(30), nullable=False),
        sa.Column("waste_type", sa.String(30), nullable=False, server_default="other"),
        sa.Column("reason", sa.Text(), nullable=False),
        sa.Column("estimated_cost", sa.Numeric(12, 2)),
        sa.Column("waste_date", sa.Date(), nullable=False),
        sa.Column("recorded_by", sa.String(100), nullable=False),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now()),
    )
    op.create_index("ix_waste_ingredient_id", "waste", ["ingredient_id"])

    # ── Stock ledger ─────────────────────────────────────────
    op.create_table(
        "stock_transactions",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("ingredient_id", sa.String(36), sa.ForeignKey("ingredients.id"), nullable=False),
        sa.Column("transaction_type", sa.String(20), nullable=False),
        sa.Column("quantity_change", sa.Numeric(12, 3), nullable=False),
        sa.Column("unit", sa.String(30), nullable=False),
        sa.Column("reference_type", sa.String(30)),
        sa.Column("reference_id", sa.String(36)),
        sa.Column("reason", sa.Text()),
        sa.Column("corrects_entry_id", sa.Integer(), sa.ForeignKey("stock_transactions.id")),
        sa.Column("created_by", sa.String(100), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_stock_transactions_ingredient_id", "stock_transactions", ["ingredient_id"])
    op.create_index("ix_stock_transactions_transaction_type", "stock_transactions", ["transaction_type"])
    op.create_index("ix_stock_transactions_reference_id", "stock_transactions", ["reference_id"])
    op.create_index("ix_stock_transactions_corrects_entry_id", "stock_transactions", ["corrects_entry_id"])
    op.create_index("ix_stock_transactions_created_at", "stock_transactions", ["created_at"])

    op.create_table(
        "lots",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("lot_number", sa.String(50), nullable=False),
        sa.Column("ingredient_id", sa.String(36), sa.ForeignKey("ingredients.id"), nullable=False),
        sa.Column("purchase_id", sa.Integer(), sa.ForeignKey("purchases.id")),
        sa.Column("quantity", sa.Numeric(12, 3), nullable=False),
        sa.Column("remaining_quantity", sa.Numeric(12, 3), nullable=False),
        sa.Column("unit", sa.String(30), nullable=False),
        sa.Column("unit_cost", sa.Numeric(12, 4)),
        sa.Column("received_date", sa.Date(), nullable=False),
        sa.Column("expiry_date", sa.Date()),
        sa.Column("status", sa.String(20), server_default="active"),
        sa.Column("notes", sa.Text()),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now()),
    )
    op.create_index("ix_lots_lot_number", "lots", ["lot_number"], unique=True)
    op.create_index("ix_lots_ingredient_id", "lots", ["ingredient_id"])
    op.create_index("ix_lots_purchase_id", "lots", ["purchase_id"])
    op.create_index("ix_lots_received_date", "lots", ["received_date"])
    op.create_index("ix_lots_expiry_date", "lots", ["expiry_date"])
    op.create_index("ix_lots_status", "lots", ["status"])

    # ── Costing ──────────────────────────────────────────────
    op.create_table(
        "batches",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("batch_number", sa.String(50), nullable=False),
        sa.Column("menu_id", sa.String(36), sa.ForeignKey("menus.id")),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("production_date", sa.Date(), nullable=False),
        sa.Column("expiry_date", sa.Date()),
        sa.Column("total_cost", sa.Numeric(12, 2), server_default="0"),
        sa.Column("cost_per_unit", sa.Numeric(12, 4)),
        sa.Column("status", sa.String(20), server_default="active"),
        sa.Column("notes", sa.Text()),
        sa.Column("produced_by", sa.String(100)),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now()),
    )
    op.create_index("ix_batches_batch_number", "batches", ["batch_number"], unique=True)
    op.create_index("ix_batches_menu_id", "batches", ["menu_id"])

    op.create_table(
        "batch_cost_lines",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column(
            "batch_id", sa.String(36),
            sa.ForeignKey("batches.id", ondelete="CASCADE"), nullable=False,
        ),
        sa.Column("cost_type", sa.String(20), nullable=False),
        sa.Column("item_id", sa.String(36)),
        sa.Column("item_name", sa.String(200), nullable=False),
        sa.Column("quantity", sa.Numeric(12, 3), nullable=False),
        sa.Column("unit", sa.String(30)),
        sa.Column("unit_cost", sa.Numeric(12, 4), nullable=False),
        sa.Column("total_cost", sa.Numeric(12, 2), nullable=False),
        sa.Column("notes", sa.Text()),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now()),
    )
    op.create_index("ix_batch_cost_lines_batch_id", "batch_cost_lines", ["batch_id"])

    op.create_table(
        "cogs",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("sale_id", sa.Integer(), sa.ForeignKey("sales.id"), nullable=False, unique=True),
        sa.Column("menu_id", sa.String(36), sa.ForeignKey("menus.id"), nullable=False),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("quantity", sa.Integer(), server_default="1"),
        sa.Column("ingredient_cost", sa.Numeric(12, 2)),
        sa.Column("packaging_cost", sa.Numeric(12, 2), server_default="0"),
        sa.Column("labor_cost", sa.Numeric(12, 2), server_default="0"),
        sa.Column("overhead_cost", sa.Numeric(12, 2), server_default="0"),
        sa.Column("total_cogs", sa.Numeric(12, 2)),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now()),
    )
    op.create_index("ix_cogs_menu_id", "cogs", ["menu_id"])
    op.create_index("ix_cogs_date", "cogs", ["date"])

    # ── Audit ────────────────────────────────────────────────
    op.create_table(
        "activity_logs",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("actor", sa.String(100), nullable=False),
        sa.Column("action", sa.String(50), nullable=False),
        sa.Column("entity_type", sa.String(50), nullable=False),
        sa.Column("entity_id", sa.String(36)),
        sa.Column("entity_code", sa.String(100)),
        sa.Column("summary", sa.Text()),
        sa.Column("details", sa.JSON()),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_activity_logs_actor", "activity_logs", ["actor"])
    op.create_index("ix_activity_logs_action", "activity_logs", ["action"])
    op.create_index("ix_activity_logs_entity_type", "activity_logs", ["entity_type"])
    op.create_index("ix_activity_logs_created_at", "activity_logs", ["created_at"])


def downgrade() -> None:
    op.drop_table("activity_logs")
    op.drop_table("cogs")
    op.drop_table("batch_cost_lines")
    op.drop_table("batches")
    op.drop_table("lots")
    op.drop_table("stock_transactions")
    op.drop_table("waste")
    op.drop_table("stock_adjustments")
    op.drop_table("sales")
    op.drop_table("purchases")
    op.drop_table("menu_recipes")
    op.drop_table("menus")
    op.drop_table("ingredients")
