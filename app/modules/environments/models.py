# Supabase table: environments
# This file documents the expected database schema
# Actual operations are handled via Supabase SDK in usecases.py

"""
Expected Supabase table structure:
- id: uuid (primary key, default: gen_random_uuid())
- name: text (not null)
- identifier: text (not null) - short slug generated on create
- organization_id: uuid (not null)
- parent_id: uuid (foreign key to environments.id, nullable)
- widget: jsonb (not null, default: '{"notification_center_encryption": false}')
- api_keys: jsonb (not null, default: '[]') - list of
    {key: fernet token, hash: sha256 hex of the secret, user_id: uuid, created_at: timestamp}
- created_by: uuid (foreign key to users.id, nullable)
- created_at: timestamp (default: now())
- updated_at: timestamp (nullable)
- index on (organization_id)
- gin index on api_keys (jsonb_path_ops) for hash lookups
"""
