# lambdas/common/settings.py
"""
Environment-driven configuration shared by every ProDentHub Lambda.
"""
from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class AppSettings(BaseSettings):
    """
    Manages env vars using Pydantic BaseSettings.
    A local .env file is read automatically; defaults mirror the production table names.
    """
    model_config = SettingsConfigDict(env_file='.env', env_file_encoding='utf-8', extra='ignore')

    aws_region: str = Field("ap-southeast-2", alias='AWS_REGION')

    # Agent automation tables
    campaigns_table: str = Field("production-prodenthub-campaigns-metadata", alias='CAMPAIGNS_TABLE')
    content_table: str = Field("production-prodenthub-content", alias='CONTENT_TABLE')
    templates_table: str = Field("production-prodenthub-agent-templates", alias='TEMPLATES_TABLE')
    audit_logs_table: str = Field("production-prodenthub-audit-logs", alias='AUDIT_LOGS_TABLE')
    api_keys_table: str = Field("production-prodenthub-api-keys", alias='API_KEYS_TABLE')
    publishing_history_table: str = Field("production-prodenthub-publishing-history", alias='PUBLISHING_HISTORY_TABLE')
    social_targets_table: str = Field("production-prodenthub-social-targets", alias='SOCIAL_TARGETS_TABLE')
    analytics_table: str = Field("production-prodenthub-content-analytics", alias='ANALYTICS_TABLE')
    coupons_table: str = Field("production-prodenthub-coupons", alias='COUPONS_TABLE')

    # AI provider
    ai_provider: str = Field("bedrock", alias='AI_PROVIDER')
    ai_model: str = Field("anthropic.claude-3-5-sonnet-20241022-v2:0", alias='AI_MODEL')
    openai_api_key: str = Field("", alias='OPENAI_API_KEY')

    # Facebook
    facebook_secret_name: str = Field("prodenthub/facebook/credentials", alias='FACEBOOK_SECRET_NAME')

    # Checkout
    stripe_secret_key: str = Field("", alias='STRIPE_SECRET_KEY')
    stripe_webhook_secret: str = Field("", alias='STRIPE_WEBHOOK_SECRET')
    frontend_url: str = Field("https://campaigns.prodenthub.com.au", alias='FRONTEND_URL')
    ses_from_email: str = Field("noreply@prodenthub.com.au", alias='SES_FROM_EMAIL')
    project_name: str = Field("prodenthub", alias='PROJECT_NAME')
    environment: str = Field("production", alias='ENVIRONMENT')

    # Admin API
    master_key: str = Field("", alias='MASTER_KEY')

    # Agent orchestrator
    api_base_url: str = Field("https://api.prodenthub.com.au/v1", alias='API_BASE_URL')
    agent_api_key: str = Field("", alias='API_KEY')

    def campaign_table(self, kind: str) -> str:
        """Per-campaign purchase tables follow the '<project>-<kind>-<env>' convention."""
        return f"{self.project_name}-{kind}-{self.environment}"


@lru_cache
def get_settings() -> AppSettings:
    return AppSettings()
