"""
Analytics Service - Sales roll-ups for a shopkeeper's dashboard.

All numbers are computed locally from orders, products and feedback. The AI
narrative is best-effort: if the text service fails, a placeholder is
returned and the numeric report is unaffected.
"""

from collections import defaultdict
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Any

from loguru import logger
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from localmart.core.config import settings
from localmart.core.exceptions import ExternalServiceUnavailable, NotFound
from localmart.core.security import RequestContext
from localmart.models.feedback import Feedback
from localmart.models.shop import Order, OrderStatus, Product, Shop
from localmart.modules.analytics.insights import GeminiClient
from localmart.modules.feedback.service import FeedbackService, average_rating

INSIGHTS_PLACEHOLDER = "Unable to generate insights at this time."
FEEDBACK_PLACEHOLDER = "Unable to generate feedback summary at this time."

# Turnover reported for products that sold out completely
SOLD_OUT_TURNOVER = 999.0

TOP_N = 5
TREND_DAYS = 7


def stock_status(stock: int) -> str:
    """Classify a stock level."""
    if stock == 0:
        return "out_of_stock"
    if stock < settings.low_stock_threshold:
        return "low_stock"
    return "in_stock"


def turnover_rate(sales: int, stock: int) -> float:
    """Units sold per unit in stock."""
    if stock > 0:
        return sales / stock
    return SOLD_OUT_TURNOVER if sales > 0 else 0.0


def _sum_totals(orders: list[Order]) -> float:
    return float(sum((order.total for order in orders), Decimal("0")))


class AnalyticsService:
    """
    Builds the analytics report for the caller's shop.

    Usage:
        analytics = AnalyticsService(db_session, get_gemini_client())
        report = await analytics.build_report(ctx)
    """

    def __init__(self, db: AsyncSession, ai: GeminiClient) -> None:
        """Initialize with a database session and a text-generation client."""
        self.db = db
        self.ai = ai

    async def build_report(
        self,
        ctx: RequestContext,
        now: datetime | None = None,
    ) -> dict[str, Any]:
        """
        Aggregate the caller's shop data into one report.

        Args:
            ctx: Requesting shopkeeper
            now: Reference time for the rolling windows (UTC, naive)

        Returns:
            Report with summary, product/category performance, daily trend,
            inventory alerts, feedback block and AI insights
        """
        now = now or datetime.utcnow()

        result = await self.db.execute(select(Shop).where(Shop.owner_id == ctx.user_id))
        shop = result.scalar_one_or_none()
        if not shop:
            raise NotFound("Shop not found")

        products = list(
            (
                await self.db.execute(
                    select(Product)
                    .where(Product.shop_id == shop.id)
                    .order_by(Product.id)
                )
            ).scalars().all()
        )
        orders = list(
            (
                await self.db.execute(
                    select(Order)
                    .options(selectinload(Order.items), selectinload(Order.user))
                    .where(Order.shop_id == shop.id)
                    .order_by(Order.created_at.desc(), Order.id.desc())
                )
            ).scalars().all()
        )
        completed = [o for o in orders if o.status == OrderStatus.COMPLETED]
        feedback = await FeedbackService(self.db).get_shop_feedback(shop.id)

        performance = self._product_performance(products, orders)
        summary = self._summary(orders, completed, now)

        report: dict[str, Any] = {
            "summary": summary,
            "product_performance": performance,
            "category_performance": self._category_performance(performance),
            "daily_sales_trend": self._daily_trend(completed, now),
            "top_selling_products": [
                self._brief(p)
                for p in sorted(performance, key=lambda p: p["sales"], reverse=True)[:TOP_N]
            ],
            "top_revenue_products": [
                self._brief(p)
                for p in sorted(performance, key=lambda p: p["revenue"], reverse=True)[:TOP_N]
            ],
            "low_stock_products": [
                {
                    "name": p["name"],
                    "stock": p["stock"],
                    "stock_status": p["stock_status"],
                    "sales": p["sales"],
                }
                for p in sorted(
                    (p for p in performance if p["stock_status"] != "in_stock"),
                    key=lambda p: p["stock"],
                )[:TOP_N]
            ],
            "slow_moving_products": [
                {
                    "name": p["name"],
                    "stock": p["stock"],
                    "sales": p["sales"],
                    "revenue": p["revenue"],
                }
                for p in performance
                if p["sales"] == 0 and p["stock"] > 0
            ][:TOP_N],
            "feedback": None,
        }

        if feedback:
            report["feedback"] = {
                "feedbacks": [self._feedback_entry(f) for f in feedback],
                "average_rating": round(average_rating(feedback), 1),
                "total_feedbacks": len(feedback),
                "ai_summary": await self._generate(
                    self._feedback_prompt(shop, feedback),
                    settings.gemini_feedback_model,
                    FEEDBACK_PLACEHOLDER,
                ),
            }

        report["ai_insights"] = await self._generate(
            self._insights_prompt(shop, summary, performance, orders),
            settings.gemini_insights_model,
            INSIGHTS_PLACEHOLDER,
        )
        return report

    # ==================== Aggregates ====================

    @staticmethod
    def _summary(
        orders: list[Order],
        completed: list[Order],
        now: datetime,
    ) -> dict[str, Any]:
        last_7 = now - timedelta(days=7)
        last_30 = now - timedelta(days=30)
        recent_7 = [o for o in completed if o.created_at >= last_7]
        recent_30 = [o for o in completed if o.created_at >= last_30]

        total_revenue = _sum_totals(completed)
        return {
            "total_revenue": total_revenue,
            "total_orders": len(orders),
            "completed_orders": len(completed),
            "average_order_value": total_revenue / len(completed) if completed else 0.0,
            "revenue_7_days": _sum_totals(recent_7),
            "revenue_30_days": _sum_totals(recent_30),
            "orders_7_days": len(recent_7),
            "orders_30_days": len(recent_30),
        }

    @staticmethod
    def _product_performance(
        products: list[Product],
        orders: list[Order],
    ) -> list[dict[str, Any]]:
        """Sales units, revenue and order count per product across all orders."""
        sales: dict[int, int] = defaultdict(int)
        revenue: dict[int, Decimal] = defaultdict(Decimal)
        order_count: dict[int, int] = defaultdict(int)

        for order in orders:
            seen: set[int] = set()
            for item in order.items:
                if item.product_id is None:
                    continue
                sales[item.product_id] += item.quantity
                revenue[item.product_id] += item.price * item.quantity
                seen.add(item.product_id)
            for product_id in seen:
                order_count[product_id] += 1

        performance = []
        for product in products:
            units = sales[product.id]
            earned = float(revenue[product.id])
            performance.append(
                {
                    "id": product.id,
                    "name": product.name,
                    "category": product.category or "Uncategorized",
                    "sales": units,
                    "revenue": earned,
                    "stock": product.stock,
                    "stock_status": stock_status(product.stock),
                    "turnover_rate": turnover_rate(units, product.stock),
                    "average_price": earned / units if units and earned else 0.0,
                    "order_count": order_count[product.id],
                }
            )
        return performance

    @staticmethod
    def _category_performance(performance: list[dict[str, Any]]) -> list[dict[str, Any]]:
        categories: dict[str, dict[str, Any]] = {}
        for product in performance:
            bucket = categories.setdefault(
                product["category"], {"sales": 0, "revenue": 0.0}
            )
            bucket["sales"] += product["sales"]
            bucket["revenue"] += product["revenue"]
        return [
            {"category": name, "sales": data["sales"], "revenue": data["revenue"]}
            for name, data in categories.items()
        ]

    @staticmethod
    def _daily_trend(completed: list[Order], now: datetime) -> list[dict[str, Any]]:
        """Units and revenue per day for the last seven days, oldest first."""
        days: dict[str, dict[str, Any]] = {}
        for offset in range(TREND_DAYS - 1, -1, -1):
            day = (now - timedelta(days=offset)).date().isoformat()
            days[day] = {"sales": 0, "revenue": Decimal("0")}

        window_start = now - timedelta(days=TREND_DAYS)
        for order in completed:
            if order.created_at < window_start:
                continue
            bucket = days.get(order.created_at.date().isoformat())
            if bucket is None:
                continue
            for item in order.items:
                bucket["sales"] += item.quantity
                bucket["revenue"] += item.price * item.quantity

        return [
            {"date": day, "sales": data["sales"], "revenue": float(data["revenue"])}
            for day, data in days.items()
        ]

    @staticmethod
    def _brief(product: dict[str, Any]) -> dict[str, Any]:
        return {
            "name": product["name"],
            "sales": product["sales"],
            "revenue": product["revenue"],
            "stock": product["stock"],
        }

    @staticmethod
    def _feedback_entry(feedback: Feedback) -> dict[str, Any]:
        return {
            "id": feedback.id,
            "rating": feedback.rating,
            "comment": feedback.comment,
            "user": {
                "name": feedback.user.name if feedback.user else "",
                "email": feedback.user.email if feedback.user else "",
            },
            "order": {
                "id": feedback.order_id,
                "total": float(feedback.order.total) if feedback.order else 0.0,
                "created_at": feedback.order.created_at.isoformat() if feedback.order else None,
            },
            "created_at": feedback.created_at.isoformat(),
        }

    # ==================== AI text ====================

    async def _generate(self, prompt: str, model: str, placeholder: str) -> str:
        try:
            return await self.ai.generate(prompt, model=model)
        except ExternalServiceUnavailable as e:
            logger.warning(f"AI text unavailable ({e.message}); using placeholder")
            return placeholder

    @staticmethod
    def _insights_prompt(
        shop: Shop,
        summary: dict[str, Any],
        performance: list[dict[str, Any]],
        orders: list[Order],
    ) -> str:
        product_lines = "\n".join(
            f"- {p['name']}: {p['sales']} sales, ${p['revenue']:.2f} revenue"
            for p in performance
        )
        order_lines = "\n".join(
            f"- Order {o.id}: ${float(o.total):.2f}, Status: {o.status.value}, "
            f"Customer: {o.user.email if o.user else 'N/A'}"
            for o in orders[:TOP_N]
        )
        return f"""You are a helpful business analyst providing actionable insights for local shopkeepers.

Analyze the following shop data and provide actionable insights:

Shop: {shop.name}
Total Orders: {summary['total_orders']}
Total Revenue: ${summary['total_revenue']:.2f}
Average Order Value: ${summary['average_order_value']:.2f}
Reward Rate: {float(shop.reward_rate) * 100:g}% of purchase amount

Product Performance:
{product_lines}

Recent Orders: {min(TOP_N, len(orders))} most recent
{order_lines}

Provide 3-5 actionable insights and recommendations for improving business performance. Focus on:
1. Product performance trends
2. Customer behavior patterns
3. Inventory management suggestions
4. Marketing opportunities
5. Revenue optimization strategies

Format as clear, concise bullet points."""

    @staticmethod
    def _feedback_prompt(shop: Shop, feedback: list[Feedback]) -> str:
        entries = "\n\n".join(
            f"{idx}. Rating: {f.rating}/5 - "
            f"{(f.user.name or f.user.email) if f.user else 'Customer'}\n"
            f"   Comment: {f.comment or 'No comment provided'}"
            for idx, f in enumerate(feedback, start=1)
        )
        return f"""You are a customer feedback analyst. Analyze the following customer feedbacks and provide a comprehensive summary:

Shop: {shop.name}
Total Feedbacks: {len(feedback)}
Average Rating: {average_rating(feedback):.1f}/5.0

Customer Feedbacks:
{entries}

Provide a comprehensive summary that includes:
1. Overall customer satisfaction trends
2. Common themes and patterns in feedback
3. Key strengths mentioned by customers
4. Areas for improvement based on feedback
5. Actionable recommendations

Format as clear, well-structured paragraphs with bullet points for recommendations."""
