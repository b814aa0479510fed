from .db import get_db_connection
import logging

logger = logging.getLogger(__name__)

async def create_tables():
    """Create tables for the AGAP platform"""
    schema_sql = """
        -- Profiles: one row per account, carries the role used for routing
        CREATE TABLE IF NOT EXISTS profiles (
            id UUID PRIMARY KEY,
            email VARCHAR(255) UNIQUE NOT NULL,
            password_hash VARCHAR(255) NOT NULL,
            full_name VARCHAR(255),
            avatar_url TEXT,
            role VARCHAR(20) NOT NULL CHECK (role IN ('user', 'responder', 'admin')) DEFAULT 'user',
            fcm_token TEXT,
            created_at TIMESTAMP WITH TIME ZONE DEFAULT NOW(),
            updated_at TIMESTAMP WITH TIME ZONE DEFAULT NOW(),
            last_login_at TIMESTAMP WITH TIME ZONE
        );

        -- Responder profiles: office details and approval status
        CREATE TABLE IF NOT EXISTS responder_profiles (
            id UUID PRIMARY KEY REFERENCES profiles(id) ON DELETE CASCADE,
            municipality VARCHAR(255),
            province VARCHAR(255),
            office_address VARCHAR(255),
            contact_number VARCHAR(32),
            account_status VARCHAR(20) NOT NULL CHECK (account_status IN ('pending', 'approved', 'rejected')) DEFAULT 'pending',
            created_at TIMESTAMP WITH TIME ZONE DEFAULT NOW(),
            updated_at TIMESTAMP WITH TIME ZONE DEFAULT NOW()
        );

        -- User profiles: citizen personal details, used to prefill alert victim data
        CREATE TABLE IF NOT EXISTS user_profiles (
            id UUID PRIMARY KEY REFERENCES profiles(id) ON DELETE CASCADE,
            first_name VARCHAR(255),
            last_name VARCHAR(255),
            address TEXT,
            birthday DATE,
            age INTEGER,
            blood_type VARCHAR(8),
            gender VARCHAR(32),
            created_at TIMESTAMP WITH TIME ZONE DEFAULT NOW(),
            updated_at TIMESTAMP WITH TIME ZONE DEFAULT NOW()
        );

        CREATE TABLE IF NOT EXISTS alerts (
            id UUID PRIMARY KEY,
            user_id UUID NOT NULL REFERENCES profiles(id) ON DELETE CASCADE,
            status VARCHAR(20) NOT NULL CHECK (status IN ('pending', 'accepted', 'rejected', 'canceled', 'completed')) DEFAULT 'pending',
            latitude NUMERIC(9,6) NOT NULL,
            longitude NUMERIC(9,6) NOT NULL,
            location_name TEXT,
            victim_name VARCHAR(255),
            victim_age INTEGER,
            victim_blood_type VARCHAR(8),
            victim_sex VARCHAR(32),
            created_at TIMESTAMP WITH TIME ZONE DEFAULT NOW(),
            updated_at TIMESTAMP WITH TIME ZONE DEFAULT NOW(),
            canceled_at TIMESTAMP WITH TIME ZONE
        );

        CREATE TABLE IF NOT EXISTS reports (
            id UUID PRIMARY KEY,
            user_id UUID NOT NULL REFERENCES profiles(id) ON DELETE CASCADE,
            status VARCHAR(20) NOT NULL CHECK (status IN ('pending', 'accepted', 'rejected', 'canceled', 'completed')) DEFAULT 'pending',
            latitude NUMERIC(9,6) NOT NULL,
            longitude NUMERIC(9,6) NOT NULL,
            location_name TEXT,
            image_url TEXT,
            description TEXT,
            created_at TIMESTAMP WITH TIME ZONE DEFAULT NOW(),
            updated_at TIMESTAMP WITH TIME ZONE DEFAULT NOW(),
            canceled_at TIMESTAMP WITH TIME ZONE
        );

        -- Responder assignments: exactly one of alert_id / report_id is set
        CREATE TABLE IF NOT EXISTS responder_assignments (
            id UUID PRIMARY KEY,
            alert_id UUID REFERENCES alerts(id) ON DELETE CASCADE,
            report_id UUID REFERENCES reports(id) ON DELETE CASCADE,
            responder_id UUID NOT NULL REFERENCES profiles(id) ON DELETE CASCADE,
            assigned_at TIMESTAMP WITH TIME ZONE DEFAULT NOW(),
            response_status VARCHAR(20) NOT NULL CHECK (response_status IN ('pending', 'accepted', 'rejected', 'in_progress', 'completed')) DEFAULT 'pending',
            responded_at TIMESTAMP WITH TIME ZONE,
            CHECK ((alert_id IS NULL) <> (report_id IS NULL)),
            UNIQUE (responder_id, alert_id),
            UNIQUE (responder_id, report_id)
        );

        CREATE TABLE IF NOT EXISTS password_reset_tokens (
            user_id UUID PRIMARY KEY REFERENCES profiles(id) ON DELETE CASCADE,
            token TEXT NOT NULL,
            created_at TIMESTAMP WITH TIME ZONE DEFAULT NOW(),
            expires_at TIMESTAMP WITH TIME ZONE NOT NULL
        );

        -- Citizen history: alerts and reports in one list
        CREATE OR REPLACE VIEW user_history AS
            SELECT 'alert' AS incident_type, id, user_id, status, latitude, longitude, location_name,
                   NULL::TEXT AS image_url, NULL::TEXT AS description,
                   created_at AS incident_date, updated_at, canceled_at
            FROM alerts
            UNION ALL
            SELECT 'report' AS incident_type, id, user_id, status, latitude, longitude, location_name,
                   image_url, description,
                   created_at AS incident_date, updated_at, canceled_at
            FROM reports;

        CREATE INDEX IF NOT EXISTS idx_alerts_status ON alerts (status);
        CREATE INDEX IF NOT EXISTS idx_alerts_user_id ON alerts (user_id);
        CREATE INDEX IF NOT EXISTS idx_reports_status ON reports (status);
        CREATE INDEX IF NOT EXISTS idx_reports_user_id ON reports (user_id);
        CREATE INDEX IF NOT EXISTS idx_assignments_responder ON responder_assignments (responder_id);
        CREATE INDEX IF NOT EXISTS idx_assignments_alert ON responder_assignments (alert_id);
        CREATE INDEX IF NOT EXISTS idx_assignments_report ON responder_assignments (report_id);
    """
    try:
        async with get_db_connection() as conn:
            async with conn.transaction():
                await conn.execute(schema_sql)
                logger.info("Database tables, indexes and views created successfully.")
    except Exception as e:
        logger.error(f"Error creating tables: {str(e)}")
        raise
