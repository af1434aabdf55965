"""Baseline migration - users, analytics, customization, workflows, Outlook

Revision ID: 0001_baseline
Revises: 
Create Date: 2026-10-19

Fresh baseline for the wealth CRM. Households, accounts and persons live in
the core CRM and are referenced here by UUID only.
"""
from typing import Sequence, Union

from alembic import op


# revision identifiers, used by Alembic.
revision: str = '0001_baseline'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create every table of the baseline schema."""

    # ==========================================================================
    # Enable required extensions
    # ==========================================================================
    op.execute('CREATE EXTENSION IF NOT EXISTS pgcrypto')  # For gen_random_uuid()

    # ==========================================================================
    # Users
    # ==========================================================================
    op.execute('''
        CREATE TABLE users (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            email VARCHAR(255) UNIQUE NOT NULL,
            display_name VARCHAR(255) NOT NULL,
            role VARCHAR(50) NOT NULL,
            is_active BOOLEAN NOT NULL DEFAULT TRUE,
            token_version INTEGER NOT NULL DEFAULT 1,
            created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT now()
        )
    ''')
    op.execute('CREATE INDEX ix_users_role ON users(role)')

    # ==========================================================================
    # Client profitability
    # ==========================================================================
    op.execute('''
        CREATE TABLE client_profitability (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            household_id UUID NOT NULL,
            period_start DATE NOT NULL,
            period_end DATE NOT NULL,
            period_type VARCHAR(20) NOT NULL DEFAULT 'monthly',

            management_fees NUMERIC(15, 2) NOT NULL DEFAULT 0,
            advisory_fees NUMERIC(15, 2) NOT NULL DEFAULT 0,
            planning_fees NUMERIC(15, 2) NOT NULL DEFAULT 0,
            performance_fees NUMERIC(15, 2) NOT NULL DEFAULT 0,
            other_revenue NUMERIC(15, 2) NOT NULL DEFAULT 0,
            total_revenue NUMERIC(15, 2) NOT NULL DEFAULT 0,

            advisor_hours NUMERIC(8, 2) NOT NULL DEFAULT 0,
            operations_hours NUMERIC(8, 2) NOT NULL DEFAULT 0,
            compliance_hours NUMERIC(8, 2) NOT NULL DEFAULT 0,

            direct_labor_cost NUMERIC(15, 2) NOT NULL DEFAULT 0,
            technology_cost NUMERIC(15, 2) NOT NULL DEFAULT 0,
            custodian_cost NUMERIC(15, 2) NOT NULL DEFAULT 0,
            marketing_cost NUMERIC(15, 2) NOT NULL DEFAULT 0,
            overhead_allocation NUMERIC(15, 2) NOT NULL DEFAULT 0,
            total_cost NUMERIC(15, 2) NOT NULL DEFAULT 0,

            gross_profit NUMERIC(15, 2) NOT NULL DEFAULT 0,
            net_profit NUMERIC(15, 2) NOT NULL DEFAULT 0,
            gross_margin NUMERIC(7, 2) NOT NULL DEFAULT 0,
            net_margin NUMERIC(7, 2) NOT NULL DEFAULT 0,
            revenue_per_hour NUMERIC(12, 2) NOT NULL DEFAULT 0,
            profit_per_hour NUMERIC(12, 2) NOT NULL DEFAULT 0,

            aum NUMERIC(18, 2) NOT NULL DEFAULT 0,
            effective_fee_rate NUMERIC(7, 6) NOT NULL DEFAULT 0,

            meetings_count INTEGER NOT NULL DEFAULT 0,
            email_count INTEGER NOT NULL DEFAULT 0,
            tasks_count INTEGER NOT NULL DEFAULT 0,
            documents_generated INTEGER NOT NULL DEFAULT 0,

            profitability_score NUMERIC(5, 2),
            tier VARCHAR(20),
            metadata JSONB NOT NULL DEFAULT '{}'::jsonb,
            created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            CONSTRAINT uq_client_profitability_period UNIQUE (household_id, period_type, period_start)
        )
    ''')
    op.execute('CREATE INDEX ix_client_profitability_household_id ON client_profitability(household_id)')
    op.execute('CREATE INDEX idx_client_profitability_period ON client_profitability(period_start, period_end)')
    op.execute('CREATE INDEX idx_client_profitability_tier ON client_profitability(tier)')

    # ==========================================================================
    # Advisor metrics
    # ==========================================================================
    op.execute('''
        CREATE TABLE advisor_metrics (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            advisor_id UUID NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            period_start DATE NOT NULL,
            period_end DATE NOT NULL,
            period_type VARCHAR(20) NOT NULL DEFAULT 'monthly',

            total_households INTEGER NOT NULL DEFAULT 0,
            new_households INTEGER NOT NULL DEFAULT 0,
            lost_households INTEGER NOT NULL DEFAULT 0,
            total_aum NUMERIC(18, 2) NOT NULL DEFAULT 0,
            net_new_assets NUMERIC(18, 2) NOT NULL DEFAULT 0,
            market_change NUMERIC(18, 2) NOT NULL DEFAULT 0,

            total_revenue NUMERIC(15, 2) NOT NULL DEFAULT 0,
            management_fee_revenue NUMERIC(15, 2) NOT NULL DEFAULT 0,
            planning_fee_revenue NUMERIC(15, 2) NOT NULL DEFAULT 0,
            other_revenue NUMERIC(15, 2) NOT NULL DEFAULT 0,

            meetings_completed INTEGER NOT NULL DEFAULT 0,
            review_meetings INTEGER NOT NULL DEFAULT 0,
            prospect_meetings INTEGER NOT NULL DEFAULT 0,
            tasks_completed INTEGER NOT NULL DEFAULT 0,
            client_facing_hours NUMERIC(8, 2) NOT NULL DEFAULT 0,
            admin_hours NUMERIC(8, 2) NOT NULL DEFAULT 0,
            emails_sent INTEGER NOT NULL DEFAULT 0,
            emails_received INTEGER NOT NULL DEFAULT 0,

            prospects_added INTEGER NOT NULL DEFAULT 0,
            prospects_converted INTEGER NOT NULL DEFAULT 0,
            pipeline_value NUMERIC(18, 2) NOT NULL DEFAULT 0,
            conversion_rate NUMERIC(5, 2) NOT NULL DEFAULT 0,

            client_satisfaction_score NUMERIC(5, 2),
            compliance_issues INTEGER NOT NULL DEFAULT 0,
            overdue_reviews INTEGER NOT NULL DEFAULT 0,
            overdue_kyc INTEGER NOT NULL DEFAULT 0,

            performance_score NUMERIC(5, 2),
            goals JSONB NOT NULL DEFAULT '{}'::jsonb,
            metadata JSONB NOT NULL DEFAULT '{}'::jsonb,
            created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            CONSTRAINT uq_advisor_metrics_period UNIQUE (advisor_id, period_type, period_start)
        )
    ''')
    op.execute('CREATE INDEX ix_advisor_metrics_advisor_id ON advisor_metrics(advisor_id)')
    op.execute('CREATE INDEX idx_advisor_metrics_period ON advisor_metrics(period_start, period_end)')

    # ==========================================================================
    # Firm metrics
    # ==========================================================================
    op.execute('''
        CREATE TABLE firm_metrics (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            period_start DATE NOT NULL,
            period_end DATE NOT NULL,
            period_type VARCHAR(20) NOT NULL DEFAULT 'monthly',

            total_aum NUMERIC(18, 2) NOT NULL DEFAULT 0,
            beginning_aum NUMERIC(18, 2) NOT NULL DEFAULT 0,
            net_new_assets NUMERIC(18, 2) NOT NULL DEFAULT 0,
            market_change NUMERIC(18, 2) NOT NULL DEFAULT 0,
            withdrawals NUMERIC(18, 2) NOT NULL DEFAULT 0,
            contributions NUMERIC(18, 2) NOT NULL DEFAULT 0,

            total_revenue NUMERIC(15, 2) NOT NULL DEFAULT 0,
            management_fees NUMERIC(15, 2) NOT NULL DEFAULT 0,
            advisory_fees NUMERIC(15, 2) NOT NULL DEFAULT 0,
            planning_fees NUMERIC(15, 2) NOT NULL DEFAULT 0,
            other_revenue NUMERIC(15, 2) NOT NULL DEFAULT 0,

            total_households INTEGER NOT NULL DEFAULT 0,
            new_households INTEGER NOT NULL DEFAULT 0,
            lost_households INTEGER NOT NULL DEFAULT 0,
            retention_rate NUMERIC(5, 2) NOT NULL DEFAULT 0,

            average_household_aum NUMERIC(15, 2) NOT NULL DEFAULT 0,
            average_revenue_per_household NUMERIC(15, 2) NOT NULL DEFAULT 0,
            blended_fee_rate NUMERIC(7, 6) NOT NULL DEFAULT 0,
            operating_margin NUMERIC(5, 2) NOT NULL DEFAULT 0,

            total_advisors INTEGER NOT NULL DEFAULT 0,
            revenue_per_advisor NUMERIC(15, 2) NOT NULL DEFAULT 0,
            aum_per_advisor NUMERIC(18, 2) NOT NULL DEFAULT 0,
            households_per_advisor NUMERIC(8, 2) NOT NULL DEFAULT 0,

            compliance_issues INTEGER NOT NULL DEFAULT 0,
            overdue_reviews INTEGER NOT NULL DEFAULT 0,
            kyc_compliance NUMERIC(5, 2) NOT NULL DEFAULT 0,

            metadata JSONB NOT NULL DEFAULT '{}'::jsonb,
            created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            CONSTRAINT uq_firm_metrics_period UNIQUE (period_type, period_start)
        )
    ''')

    # ==========================================================================
    # Activity snapshots
    # ==========================================================================
    op.execute('''
        CREATE TABLE activity_snapshots (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            user_id UUID REFERENCES users(id) ON DELETE CASCADE,
            snapshot_date DATE NOT NULL,
            snapshot_type VARCHAR(20) NOT NULL DEFAULT 'daily',

            tasks_created INTEGER NOT NULL DEFAULT 0,
            tasks_completed INTEGER NOT NULL DEFAULT 0,
            tasks_overdue INTEGER NOT NULL DEFAULT 0,
            meetings_scheduled INTEGER NOT NULL DEFAULT 0,
            meetings_completed INTEGER NOT NULL DEFAULT 0,
            meetings_cancelled INTEGER NOT NULL DEFAULT 0,
            emails_sent INTEGER NOT NULL DEFAULT 0,
            emails_received INTEGER NOT NULL DEFAULT 0,
            calls_logged INTEGER NOT NULL DEFAULT 0,
            documents_uploaded INTEGER NOT NULL DEFAULT 0,
            documents_generated INTEGER NOT NULL DEFAULT 0,
            prospects_added INTEGER NOT NULL DEFAULT 0,
            prospects_advanced INTEGER NOT NULL DEFAULT 0,
            prospects_converted INTEGER NOT NULL DEFAULT 0,
            prospects_lost INTEGER NOT NULL DEFAULT 0,
            workflows_started INTEGER NOT NULL DEFAULT 0,
            workflows_completed INTEGER NOT NULL DEFAULT 0,
            workflow_steps_completed INTEGER NOT NULL DEFAULT 0,

            additional_metrics JSONB NOT NULL DEFAULT '{}'::jsonb,
            created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            CONSTRAINT uq_activity_snapshot_key UNIQUE (user_id, snapshot_date, snapshot_type)
        )
    ''')
    op.execute('CREATE INDEX idx_activity_snapshot_date ON activity_snapshots(snapshot_date)')

    # ==========================================================================
    # Custom fields (EAV)
    # ==========================================================================
    op.execute('''
        CREATE TABLE custom_field_definitions (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            field_name VARCHAR(100) NOT NULL,
            field_key VARCHAR(100) NOT NULL,
            field_type VARCHAR(20) NOT NULL,
            entity_target VARCHAR(20) NOT NULL,
            description TEXT,
            placeholder VARCHAR(255),
            default_value VARCHAR(255),
            is_required BOOLEAN NOT NULL DEFAULT FALSE,
            is_active BOOLEAN NOT NULL DEFAULT TRUE,
            show_in_list BOOLEAN NOT NULL DEFAULT TRUE,
            show_in_detail BOOLEAN NOT NULL DEFAULT TRUE,
            is_searchable BOOLEAN NOT NULL DEFAULT FALSE,
            is_filterable BOOLEAN NOT NULL DEFAULT FALSE,
            display_order INTEGER NOT NULL DEFAULT 0,
            field_group VARCHAR(100),
            options JSONB NOT NULL DEFAULT '{}'::jsonb,
            metadata JSONB NOT NULL DEFAULT '{}'::jsonb,
            created_by_user_id UUID REFERENCES users(id) ON DELETE SET NULL,
            created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            CONSTRAINT uq_custom_field_key UNIQUE (entity_target, field_key)
        )
    ''')
    op.execute('CREATE INDEX idx_custom_field_target_order ON custom_field_definitions(entity_target, display_order)')

    op.execute('''
        CREATE TABLE custom_field_values (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            field_definition_id UUID NOT NULL REFERENCES custom_field_definitions(id) ON DELETE CASCADE,
            entity_type VARCHAR(20) NOT NULL,
            entity_id UUID NOT NULL,
            text_value TEXT,
            number_value DOUBLE PRECISION,
            boolean_value BOOLEAN,
            date_value TIMESTAMPTZ,
            json_value JSONB,
            updated_by_user_id UUID REFERENCES users(id) ON DELETE SET NULL,
            created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            CONSTRAINT uq_custom_field_value_entity UNIQUE (field_definition_id, entity_type, entity_id)
        )
    ''')
    op.execute('CREATE INDEX idx_custom_field_value_entity ON custom_field_values(entity_type, entity_id)')

    # ==========================================================================
    # Tags
    # ==========================================================================
    op.execute('''
        CREATE TABLE tags (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            name VARCHAR(100) NOT NULL,
            category VARCHAR(50),
            color VARCHAR(7) NOT NULL DEFAULT '#6366f1',
            icon VARCHAR(50),
            description TEXT,
            parent_id UUID REFERENCES tags(id) ON DELETE SET NULL,
            is_active BOOLEAN NOT NULL DEFAULT TRUE,
            usage_count INTEGER NOT NULL DEFAULT 0,
            created_by_user_id UUID REFERENCES users(id) ON DELETE SET NULL,
            created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            CONSTRAINT uq_tag_category_name UNIQUE (category, name)
        )
    ''')
    op.execute('CREATE INDEX idx_tags_parent ON tags(parent_id)')

    op.execute('''
        CREATE TABLE entity_tags (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            tag_id UUID NOT NULL REFERENCES tags(id) ON DELETE CASCADE,
            entity_type VARCHAR(20) NOT NULL,
            entity_id UUID NOT NULL,
            added_by_user_id UUID REFERENCES users(id) ON DELETE SET NULL,
            created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            CONSTRAINT uq_entity_tag UNIQUE (tag_id, entity_type, entity_id)
        )
    ''')
    op.execute('CREATE INDEX idx_entity_tags_entity ON entity_tags(entity_type, entity_id)')

    # ==========================================================================
    # Saved views & preferences
    # ==========================================================================
    op.execute('''
        CREATE TABLE saved_views (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            name VARCHAR(100) NOT NULL,
            description TEXT,
            user_id UUID NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            entity_type VARCHAR(20) NOT NULL,
            view_type VARCHAR(20) NOT NULL DEFAULT 'table',
            is_shared BOOLEAN NOT NULL DEFAULT FALSE,
            is_default BOOLEAN NOT NULL DEFAULT FALSE,
            is_pinned BOOLEAN NOT NULL DEFAULT FALSE,
            columns JSONB NOT NULL DEFAULT '[]'::jsonb,
            filters JSONB NOT NULL DEFAULT '[]'::jsonb,
            sorting JSONB NOT NULL DEFAULT '[]'::jsonb,
            grouping JSONB,
            display JSONB NOT NULL DEFAULT '{}'::jsonb,
            icon VARCHAR(50),
            color VARCHAR(7),
            usage_count INTEGER NOT NULL DEFAULT 0,
            last_used_at TIMESTAMPTZ,
            created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT now()
        )
    ''')
    op.execute('CREATE INDEX idx_saved_views_user_entity ON saved_views(user_id, entity_type)')
    # At most one default view per user and entity type
    op.execute('''
        CREATE UNIQUE INDEX uq_saved_views_default
        ON saved_views(user_id, entity_type)
        WHERE is_default
    ''')

    op.execute('''
        CREATE TABLE user_preferences (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            user_id UUID UNIQUE NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            theme VARCHAR(20) NOT NULL DEFAULT 'system',
            language VARCHAR(10) NOT NULL DEFAULT 'en',
            timezone VARCHAR(50) NOT NULL DEFAULT 'America/New_York',
            date_format VARCHAR(20) NOT NULL DEFAULT 'MM/DD/YYYY',
            currency VARCHAR(3) NOT NULL DEFAULT 'USD',
            dashboard_layout JSONB NOT NULL DEFAULT '{}'::jsonb,
            table_preferences JSONB NOT NULL DEFAULT '{}'::jsonb,
            sidebar_state JSONB NOT NULL DEFAULT '{}'::jsonb,
            recent_items JSONB NOT NULL DEFAULT '[]'::jsonb,
            favorites JSONB NOT NULL DEFAULT '[]'::jsonb,
            shortcuts JSONB NOT NULL DEFAULT '{}'::jsonb,
            created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT now()
        )
    ''')

    # ==========================================================================
    # Workflows
    # ==========================================================================
    op.execute('''
        CREATE TABLE workflow_templates (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            name VARCHAR(255) NOT NULL,
            description TEXT,
            trigger VARCHAR(50) NOT NULL,
            status VARCHAR(20) NOT NULL DEFAULT 'draft',
            trigger_conditions JSONB,
            steps JSONB NOT NULL DEFAULT '[]'::jsonb,
            estimated_duration_days INTEGER,
            tags JSONB NOT NULL DEFAULT '[]'::jsonb,
            is_default BOOLEAN NOT NULL DEFAULT FALSE,
            created_by_user_id UUID REFERENCES users(id) ON DELETE SET NULL,
            created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            deleted_at TIMESTAMPTZ
        )
    ''')
    op.execute('CREATE INDEX idx_workflow_templates_trigger_status ON workflow_templates(trigger, status)')

    op.execute('''
        CREATE TABLE workflow_instances (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            template_id UUID NOT NULL REFERENCES workflow_templates(id),
            household_id UUID,
            person_id UUID,
            prospect_id UUID,
            account_id UUID,
            status VARCHAR(20) NOT NULL DEFAULT 'running',
            started_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            completed_at TIMESTAMPTZ,
            current_step INTEGER NOT NULL DEFAULT 0,
            step_statuses JSONB NOT NULL DEFAULT '{}'::jsonb,
            triggered_by_user_id UUID REFERENCES users(id) ON DELETE SET NULL,
            trigger_data JSONB,
            metadata JSONB NOT NULL DEFAULT '{}'::jsonb,
            created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT now()
        )
    ''')
    op.execute('CREATE INDEX idx_workflow_instances_status ON workflow_instances(status)')
    op.execute('CREATE INDEX idx_workflow_instances_household ON workflow_instances(household_id)')

    # ==========================================================================
    # Outlook integration
    # ==========================================================================
    op.execute('''
        CREATE TABLE outlook_connections (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            user_id UUID UNIQUE NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            email VARCHAR(255),
            access_token_encrypted TEXT,
            refresh_token_encrypted TEXT,
            token_expires_at TIMESTAMPTZ,
            status VARCHAR(20) NOT NULL DEFAULT 'pending',
            sync_emails BOOLEAN NOT NULL DEFAULT TRUE,
            sync_calendar BOOLEAN NOT NULL DEFAULT TRUE,
            auto_tag_emails BOOLEAN NOT NULL DEFAULT TRUE,
            skip_private_events BOOLEAN NOT NULL DEFAULT TRUE,
            skip_all_day_events BOOLEAN NOT NULL DEFAULT FALSE,
            email_folders JSONB NOT NULL DEFAULT '[]'::jsonb,
            last_email_sync_at TIMESTAMPTZ,
            last_calendar_sync_at TIMESTAMPTZ,
            error_message TEXT,
            created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT now()
        )
    ''')

    op.execute('''
        CREATE TABLE outlook_emails (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            connection_id UUID NOT NULL REFERENCES outlook_connections(id) ON DELETE CASCADE,
            outlook_message_id VARCHAR(255) NOT NULL,
            conversation_id VARCHAR(255),
            internet_message_id VARCHAR(500),
            subject TEXT,
            body_preview TEXT,
            from_address VARCHAR(255),
            from_name VARCHAR(255),
            to_recipients JSONB NOT NULL DEFAULT '[]'::jsonb,
            cc_recipients JSONB NOT NULL DEFAULT '[]'::jsonb,
            bcc_recipients JSONB NOT NULL DEFAULT '[]'::jsonb,
            received_at TIMESTAMPTZ,
            sent_at TIMESTAMPTZ,
            is_read BOOLEAN NOT NULL DEFAULT FALSE,
            is_draft BOOLEAN NOT NULL DEFAULT FALSE,
            has_attachments BOOLEAN NOT NULL DEFAULT FALSE,
            importance VARCHAR(20),
            folder_id VARCHAR(255),
            categories JSONB NOT NULL DEFAULT '[]'::jsonb,
            household_id UUID,
            account_id UUID,
            person_id UUID,
            match_metadata JSONB,
            manually_tagged BOOLEAN NOT NULL DEFAULT FALSE,
            is_archived BOOLEAN NOT NULL DEFAULT FALSE,
            created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            CONSTRAINT uq_outlook_email_message UNIQUE (connection_id, outlook_message_id)
        )
    ''')
    op.execute('CREATE INDEX idx_outlook_emails_household ON outlook_emails(household_id)')
    op.execute('CREATE INDEX idx_outlook_emails_received ON outlook_emails(received_at)')

    op.execute('''
        CREATE TABLE outlook_events (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            connection_id UUID NOT NULL REFERENCES outlook_connections(id) ON DELETE CASCADE,
            outlook_event_id VARCHAR(255) NOT NULL,
            ical_uid VARCHAR(255),
            subject TEXT,
            body_preview TEXT,
            location VARCHAR(500),
            start_time TIMESTAMPTZ,
            end_time TIMESTAMPTZ,
            is_all_day BOOLEAN NOT NULL DEFAULT FALSE,
            is_cancelled BOOLEAN NOT NULL DEFAULT FALSE,
            is_online_meeting BOOLEAN NOT NULL DEFAULT FALSE,
            online_meeting_url TEXT,
            organizer_email VARCHAR(255),
            organizer_name VARCHAR(255),
            attendees JSONB NOT NULL DEFAULT '[]'::jsonb,
            sensitivity VARCHAR(20),
            show_as VARCHAR(20),
            categories JSONB NOT NULL DEFAULT '[]'::jsonb,
            household_id UUID,
            account_id UUID,
            person_id UUID,
            match_metadata JSONB,
            manually_tagged BOOLEAN NOT NULL DEFAULT FALSE,
            created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            CONSTRAINT uq_outlook_event UNIQUE (connection_id, outlook_event_id)
        )
    ''')
    op.execute('CREATE INDEX idx_outlook_events_household ON outlook_events(household_id)')
    op.execute('CREATE INDEX idx_outlook_events_start ON outlook_events(start_time)')

    op.execute('''
        CREATE TABLE outlook_matching_rules (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            name VARCHAR(100) NOT NULL,
            description TEXT,
            rule_type VARCHAR(30) NOT NULL,
            pattern VARCHAR(500) NOT NULL,
            entity_type VARCHAR(20) NOT NULL,
            entity_id UUID NOT NULL,
            priority INTEGER NOT NULL DEFAULT 100,
            is_active BOOLEAN NOT NULL DEFAULT TRUE,
            created_by_user_id UUID REFERENCES users(id) ON DELETE SET NULL,
            created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT now()
        )
    ''')
    op.execute('CREATE INDEX idx_outlook_rules_active_priority ON outlook_matching_rules(is_active, priority)')


def downgrade() -> None:
    """Drop all baseline tables."""
    op.execute('DROP TABLE IF EXISTS outlook_matching_rules CASCADE')
    op.execute('DROP TABLE IF EXISTS outlook_events CASCADE')
    op.execute('DROP TABLE IF EXISTS outlook_emails CASCADE')
    op.execute('DROP TABLE IF EXISTS outlook_connections CASCADE')
    op.execute('DROP TABLE IF EXISTS workflow_instances CASCADE')
    op.execute('DROP TABLE IF EXISTS workflow_templates CASCADE')
    op.execute('DROP TABLE IF EXISTS user_preferences CASCADE')
    op.execute('DROP TABLE IF EXISTS saved_views CASCADE')
    op.execute('DROP TABLE IF EXISTS entity_tags CASCADE')
    op.execute('DROP TABLE IF EXISTS tags CASCADE')
    op.execute('DROP TABLE IF EXISTS custom_field_values CASCADE')
    op.execute('DROP TABLE IF EXISTS custom_field_definitions CASCADE')
    op.execute('DROP TABLE IF EXISTS activity_snapshots CASCADE')
    op.execute('DROP TABLE IF EXISTS firm_metrics CASCADE')
    op.execute('DROP TABLE IF EXISTS advisor_metrics CASCADE')
    op.execute('DROP TABLE IF EXISTS client_profitability CASCADE')
    op.execute('DROP TABLE IF EXISTS users CASCADE')
