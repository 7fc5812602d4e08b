# Supabase table: menu_items
# This file documents the expected database schema
# Actual operations are handled via Supabase SDK in service.py

"""
Expected Supabase table structure:

menu_items:
- id: uuid (primary key, default: gen_random_uuid())
- name: text (not null)
- description: text (nullable)
- price: numeric(10, 2) (not null, check price >= 0)
- category: text (not null, one of settings.menu_categories)
- image_url: text (nullable) - public URL in the storage bucket
- available: boolean (default: true)
- created_at: timestamptz (default: now())
- updated_at: timestamptz (default: now(), bumped by trigger on update)

Storage bucket settings.storage_bucket must exist with a public-read policy.
"""
