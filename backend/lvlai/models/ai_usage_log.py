"""AI usage logging model for tracking language model costs."""

from lvlai import db
from lvlai.utils.clock import utcnow


class AIUsageLog(db.Model):
    """One language model call: tokens, estimated cost and latency."""

    __tablename__ = "ai_usage_log"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(
        db.Integer,
        db.ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    service_name = db.Column(db.String(100), nullable=False, index=True)
    model = db.Column(db.String(100), nullable=False)
    prompt_tokens = db.Column(db.Integer, nullable=False, default=0)
    completion_tokens = db.Column(db.Integer, nullable=False, default=0)
    total_tokens = db.Column(db.Integer, nullable=False, default=0)
    estimated_cost_usd = db.Column(db.Float, nullable=False, default=0.0)
    latency_ms = db.Column(db.Integer, nullable=True)
    endpoint = db.Column(db.String(100), nullable=False, index=True)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow, index=True)

    def __repr__(self):
        return (
            f"<AIUsageLog {self.service_name} {self.model} "
            f"{self.total_tokens}t ${self.estimated_cost_usd:.4f}>"
        )
