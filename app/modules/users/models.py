# Supabase tables: profiles (or users), auth.users
# This file documents the expected database schema
# Actual operations are handled via Supabase SDK in service.py
# Authentication is handled by Supabase Auth (auth.users table)

"""
Expected Supabase table structure (table name from settings.profiles_table):

profiles:
- id: uuid (primary key, references auth.users.id ON DELETE CASCADE)
- email: text (unique, not null) - copied from auth.users on creation
- full_name: text (nullable)
- phone: text (nullable) - from sign-up metadata
- role: text (default 'user'; 'user' | 'admin' or 'customer' | 'admin' | 'superadmin')
- created_at: timestamptz (default: now())
- updated_at: timestamptz (default: now(), bumped by trigger on update)

Provisioning: a SECURITY DEFINER trigger (handle_new_user) on auth.users
inserts the profile row the instant an identity is created, taking
full_name from raw_user_meta_data. The service never inserts profiles.

Row-level policies: see app/config/policies_config.py.

RPC get_all_users(): SECURITY DEFINER, raises unless auth.uid() is an
admin, returns every profile ordered by created_at desc. This is the only
path used to list users.
"""
