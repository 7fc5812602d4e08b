# Supabase table: orders
# This file documents the expected database schema
# Actual operations are handled via Supabase SDK in service.py

"""
Expected Supabase table structure:

orders:
- id: uuid (primary key, default: gen_random_uuid())
- customer_name: text (not null)
- customer_email: text (nullable)
- customer_phone: text (nullable)
- delivery_address: text (nullable)
- special_instructions: text (nullable)
- items: jsonb (not null, default '[]') - [{name, quantity, price}] snapshots
  taken at purchase time; never joined back to menu_items
- total_amount: numeric(10, 2) (not null, check total_amount >= 0) - sum of
  line totals, computed by OrderService (no stored constraint ties it to items)
- status: text (default 'pending') - see OrderStatus
- is_read: boolean (default: false)
- created_at: timestamptz (default: now())
- updated_at: timestamptz (default: now(), bumped by trigger on update)
"""
