"""
SQL schema for the edit history table and composite image bucket.
Run these queries in your Supabase SQL editor.
"""

from garment_compose.config import HISTORY_TABLE, STORAGE_BUCKET

CREATE_HISTORY_TABLE = f"""
-- Edit history: one row per composition attempt
CREATE TABLE IF NOT EXISTS {HISTORY_TABLE} (
    id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
    user_id UUID NOT NULL REFERENCES auth.users(id) ON DELETE CASCADE,
    user_image_url TEXT NOT NULL,
    garment_image_url TEXT NOT NULL,
    composite_image_url TEXT,
    instructions TEXT NOT NULL,
    position VARCHAR(20) NOT NULL DEFAULT 'full-body'
        CHECK (position IN ('upper-body', 'lower-body', 'full-body', 'accessory')),
    fit VARCHAR(20) NOT NULL DEFAULT 'regular'
        CHECK (fit IN ('snug', 'regular', 'loose')),
    style VARCHAR(20) NOT NULL DEFAULT 'realistic'
        CHECK (style IN ('realistic', 'stylized', 'enhanced')),
    confidence REAL CHECK (confidence IS NULL OR (confidence >= 0 AND confidence <= 1)),
    status VARCHAR(20) NOT NULL CHECK (status IN ('completed', 'failed')),
    processing_time INTEGER,
    created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
);

-- Create indexes for history listing and monthly stats
CREATE INDEX IF NOT EXISTS idx_{HISTORY_TABLE}_user_id ON {HISTORY_TABLE}(user_id);
CREATE INDEX IF NOT EXISTS idx_{HISTORY_TABLE}_created_at
    ON {HISTORY_TABLE}(user_id, created_at DESC);

-- Enable Row Level Security
ALTER TABLE {HISTORY_TABLE} ENABLE ROW LEVEL SECURITY;

-- Policy: Users can read and delete their own history
CREATE POLICY {HISTORY_TABLE}_select_own ON {HISTORY_TABLE}
    FOR SELECT
    USING (auth.uid() = user_id);

CREATE POLICY {HISTORY_TABLE}_delete_own ON {HISTORY_TABLE}
    FOR DELETE
    USING (auth.uid() = user_id);

-- Policy: Service role can do everything (for API)
CREATE POLICY {HISTORY_TABLE}_service_role_all ON {HISTORY_TABLE}
    FOR ALL
    USING (auth.role() = 'service_role');
"""

CREATE_STORAGE_BUCKET = f"""
-- Public bucket for composite images
INSERT INTO storage.buckets (id, name, public)
VALUES ('{STORAGE_BUCKET}', '{STORAGE_BUCKET}', TRUE)
ON CONFLICT (id) DO NOTHING;
"""

# Combined setup script
FULL_SCHEMA_SETUP = f"""
-- =====================================================
-- Garment Compose Schema Setup
-- =====================================================
-- Run this in your Supabase SQL Editor
-- =====================================================

{CREATE_HISTORY_TABLE}

{CREATE_STORAGE_BUCKET}

-- =====================================================
-- Setup Complete!
-- =====================================================
"""

if __name__ == "__main__":
    print(FULL_SCHEMA_SETUP)
