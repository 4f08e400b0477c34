"""Declarative catalogue of business-plan topics.

Every questionnaire route is driven by one ``TopicSpec``: where its data lives
inside the plan's ``content`` document, which assistant handles it, which
fields the extraction pass asks for and how those fields render to markdown.
Adding a topic means adding a record here, not a new handler.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple


NOT_AVAILABLE = "Information not available"
EXTRACTION_ERROR = "Error extracting information"

INVALID_SECTION_KEYS = frozenset({"", "undefined", "null"})


@dataclass(frozen=True)
class Column:
    name: str
    label: str
    kind: str = "text"


@dataclass(frozen=True)
class FieldSpec:
    name: str
    label: str
    kind: str = "text"
    columns: Tuple[Column, ...] = ()
    total_of: Optional[str] = None  # column summed into a "Total" line under a table
    total_label: Optional[str] = None


@dataclass(frozen=True)
class TopicSpec:
    slug: str
    title: str
    data_key: str
    text_key: str
    thread_key: str
    assistant_env: str
    focus: str
    fields: Tuple[FieldSpec, ...] = ()
    container: Optional[str] = None
    sectioned: bool = False
    context_topics: Tuple[str, ...] = ()
    extraction_strategy: Optional[str] = None

    @property
    def topic_path(self) -> Tuple[str, ...]:
        return (self.container,) if self.container else ()

    @property
    def field_names(self) -> List[str]:
        return [f.name for f in self.fields]

    @property
    def stem(self) -> str:
        return self.data_key[:-4] if self.data_key.endswith("Data") else self.data_key

    @property
    def label(self) -> str:
        return self.title.lower()

    def section_thread_key(self, section_id: str) -> str:
        return f"{self.stem}_{section_id}"

    def default_data(self, marker: str = NOT_AVAILABLE, section_id: Optional[str] = None) -> Dict[str, Any]:
        """Deterministic fallback object used when extraction cannot produce data."""
        if self.sectioned:
            return {section_key(section_id): marker} if section_id else {}
        out: Dict[str, Any] = {}
        for spec in self.fields:
            out[spec.name] = [] if spec.kind in ("list", "table") else marker
        return out


def section_key(section_id: Optional[str]) -> str:
    """``target-market`` -> ``targetMarket``."""
    parts = [p for p in re.split(r"[-_\s]+", str(section_id or "").strip()) if p]
    if not parts:
        return ""
    head, *rest = parts
    return head[:1].lower() + head[1:] + "".join(p[:1].upper() + p[1:] for p in rest)


def section_title(section_id: str) -> str:
    return re.sub(r"[-_]+", " ", section_id or "").strip().title()


def _text(name: str, label: str) -> FieldSpec:
    return FieldSpec(name=name, label=label)


def _list(name: str, label: str) -> FieldSpec:
    return FieldSpec(name=name, label=label, kind="list")


def _money(name: str, label: str) -> FieldSpec:
    return FieldSpec(name=name, label=label, kind="money")


def _table(name: str, label: str, *columns: Column, total_of: Optional[str] = None, total_label: Optional[str] = None) -> FieldSpec:
    return FieldSpec(name=name, label=label, kind="table", columns=tuple(columns), total_of=total_of, total_label=total_label)


_FINANCIAL_CONTEXT = (
    "financial-plan/startup-costs",
    "financial-plan/revenue-projections",
    "financial-plan/expense-projections",
)

_METRIC_COLUMNS = (
    Column("name", "Metric"),
    Column("value", "Target"),
    Column("description", "Description"),
)


TOPICS: Tuple[TopicSpec, ...] = (
    TopicSpec(
        slug="business-description",
        title="Business Description",
        data_key="businessDescriptionData",
        text_key="businessDescription",
        thread_key="businessDescriptionThreadId",
        assistant_env="OPENAI_BUSINESS_DESCRIPTION_ASSISTANT_ID",
        focus="the business description: business model, structure, industry and what makes the business distinct",
        sectioned=True,
    ),
    TopicSpec(
        slug="company-overview",
        title="Company Overview",
        data_key="companyOverviewData",
        text_key="companyOverview",
        thread_key="companyOverviewThreadId",
        assistant_env="OPENAI_COMPANY_OVERVIEW_ASSISTANT_ID",
        focus="the company overview: name, founding story, current stage, core activities, milestones and business model",
        fields=(
            _text("businessName", "Business Name"),
            _text("foundingStory", "Founding Story"),
            _text("currentStage", "Current Stage"),
            _list("coreActivities", "Core Activities"),
            _list("keyMilestones", "Key Milestones"),
            _text("businessModel", "Business Model"),
        ),
    ),
    TopicSpec(
        slug="mission-statement",
        title="Mission Statement",
        data_key="missionStatementData",
        text_key="missionStatement",
        thread_key="missionStatementThreadId",
        assistant_env="OPENAI_MISSION_STATEMENT_ASSISTANT_ID",
        focus="the mission statement, vision, core values and purpose of the business",
        fields=(
            _text("missionStatement", "Mission Statement"),
            _text("vision", "Vision"),
            _list("coreValues", "Core Values"),
            _text("purpose", "Purpose"),
        ),
    ),
    TopicSpec(
        slug="vision",
        title="Vision",
        data_key="visionData",
        text_key="vision",
        thread_key="visionThreadId",
        assistant_env="OPENAI_VISION_ASSISTANT_ID",
        focus="the long-term vision and the goals for years one, three and five",
        fields=(
            _text("longTermVision", "Long-Term Vision"),
            _list("yearOneGoals", "Year One Goals"),
            _list("yearThreeGoals", "Year Three Goals"),
            _list("yearFiveGoals", "Year Five Goals"),
            _text("alignmentExplanation", "Alignment"),
        ),
    ),
    TopicSpec(
        slug="products",
        title="Products and Services",
        data_key="productsData",
        text_key="products",
        thread_key="productsThreadId",
        assistant_env="OPENAI_PRODUCTS_ASSISTANT_ID",
        focus="the products and services: description, unique selling points, competitive advantages, pricing and future plans",
        fields=(
            _text("productDescription", "Product Description"),
            _list("uniqueSellingPoints", "Unique Selling Points"),
            _list("competitiveAdvantages", "Competitive Advantages"),
            _text("pricingStrategy", "Pricing Strategy"),
            _text("futureProductPlans", "Future Product Plans"),
        ),
    ),
    TopicSpec(
        slug="markets",
        title="Markets",
        data_key="marketsData",
        text_key="markets",
        thread_key="marketsThreadId",
        assistant_env="OPENAI_MARKETS_ASSISTANT_ID",
        focus="the target market, market size, customer segments, competitors, trends and unmet needs",
        fields=(
            _text("targetMarket", "Target Market"),
            _text("marketSize", "Market Size"),
            _list("customerSegments", "Customer Segments"),
            _list("competitors", "Competitors"),
            _list("marketTrends", "Market Trends"),
            _text("marketNeeds", "Market Needs"),
        ),
    ),
    TopicSpec(
        slug="distribution",
        title="Distribution Strategy",
        data_key="distributionData",
        text_key="distribution",
        thread_key="distributionThreadId",
        assistant_env="OPENAI_DISTRIBUTION_ASSISTANT_ID",
        focus="distribution channels, the primary channel, logistics, partnerships, costs and innovative approaches",
        fields=(
            _list("distributionChannels", "Distribution Channels"),
            _text("primaryChannel", "Primary Channel"),
            _text("channelStrategy", "Channel Strategy"),
            _text("logisticsApproach", "Logistics Approach"),
            _text("partnershipStrategy", "Partnership Strategy"),
            _text("costStructure", "Cost Structure"),
            _list("innovativeApproaches", "Innovative Approaches"),
        ),
    ),
    TopicSpec(
        slug="legal-structure",
        title="Legal Structure",
        data_key="legalStructureData",
        text_key="legalStructure",
        thread_key="legalStructureThreadId",
        assistant_env="OPENAI_LEGAL_STRUCTURE_ASSISTANT_ID",
        focus="the legal structure, its rationale, ownership, tax implications, legal requirements and future plans",
        fields=(
            _text("structureType", "Structure Type"),
            _text("rationale", "Rationale"),
            _text("ownershipDetails", "Ownership Details"),
            _text("taxImplications", "Tax Implications"),
            _list("legalRequirements", "Legal Requirements"),
            _text("futurePlans", "Future Plans"),
        ),
    ),
    TopicSpec(
        slug="location-facilities",
        title="Location and Facilities",
        data_key="locationFacilitiesData",
        text_key="locationFacilities",
        thread_key="locationFacilitiesThreadId",
        assistant_env="OPENAI_LOCATION_FACILITIES_ASSISTANT_ID",
        focus="the business location, facilities, the reasons for choosing them, regulations and expansion plans",
        fields=(
            _text("locationType", "Location Type"),
            _text("locationDetails", "Location Details"),
            _text("facilities", "Facilities"),
            _text("locationRationale", "Location Rationale"),
            _text("regulatoryRequirements", "Regulatory Requirements"),
            _text("expansionPlans", "Expansion Plans"),
        ),
    ),
    TopicSpec(
        slug="marketing-plan/positioning",
        title="Market Positioning",
        container="marketingPlan",
        data_key="positioningData",
        text_key="positioning",
        thread_key="positioningThreadId",
        assistant_env="OPENAI_POSITIONING_ASSISTANT_ID",
        focus="market positioning: target audience, value proposition, competitive position, brand personality and differentiators",
        fields=(
            _text("targetAudience", "Target Audience"),
            _text("valueProposition", "Value Proposition"),
            _text("competitivePositioning", "Competitive Positioning"),
            _text("brandPersonality", "Brand Personality"),
            _list("keyDifferentiators", "Key Differentiators"),
        ),
    ),
    TopicSpec(
        slug="marketing-plan/pricing",
        title="Pricing Strategy",
        container="marketingPlan",
        data_key="pricingData",
        text_key="pricing",
        thread_key="pricingThreadId",
        assistant_env="OPENAI_PRICING_ASSISTANT_ID",
        focus="the pricing approach, pricing models, how prices were set, competitor prices, discounts and planned price changes",
        fields=(
            _text("pricingApproach", "Pricing Approach"),
            _list("pricingModels", "Pricing Models"),
            _text("priceDetermination", "Price Determination"),
            _text("competitivePriceAnalysis", "Competitive Price Analysis"),
            _text("discountStrategy", "Discount Strategy"),
            _text("priceChangeTimeline", "Price Change Timeline"),
        ),
    ),
    TopicSpec(
        slug="marketing-plan/promotional",
        title="Promotional Activities",
        container="marketingPlan",
        data_key="promotionalData",
        text_key="promotional",
        thread_key="promotionalThreadId",
        assistant_env="OPENAI_PROMOTIONAL_ASSISTANT_ID",
        focus="promotional channels, campaigns, key messages, budget, timeline and how success is measured",
        fields=(
            _list("promotionalChannels", "Promotional Channels"),
            _list("campaigns", "Campaigns"),
            _text("keyMessages", "Key Messages"),
            _text("promotionalBudget", "Promotional Budget"),
            _text("timeline", "Timeline"),
            _list("successMetrics", "Success Metrics"),
        ),
    ),
    TopicSpec(
        slug="marketing-plan/sales",
        title="Sales Strategy",
        container="marketingPlan",
        data_key="salesData",
        text_key="sales",
        thread_key="salesThreadId",
        assistant_env="OPENAI_SALES_ASSISTANT_ID",
        focus="the sales process, sales channels, the sales team, targets, customer retention and sales tools",
        fields=(
            _text("salesProcess", "Sales Process"),
            _list("salesChannels", "Sales Channels"),
            _text("salesTeam", "Sales Team"),
            _text("salesTargets", "Sales Targets"),
            _text("customerRetention", "Customer Retention"),
            _list("salesTools", "Sales Tools"),
        ),
    ),
    TopicSpec(
        slug="operations/production",
        title="Production Process",
        container="operations",
        data_key="productionData",
        text_key="production",
        thread_key="productionThreadId",
        assistant_env="OPENAI_PRODUCTION_ASSISTANT_ID",
        focus="how products or services are produced: process steps, equipment, timelines, capacity, outsourcing and costs",
        fields=(
            _text("processOverview", "Process Overview"),
            _list("processSteps", "Process Steps"),
            _text("equipmentAndTechnology", "Equipment and Technology"),
            _text("productionTimeline", "Production Timeline"),
            _text("capacityManagement", "Capacity Management"),
            _text("outsourcingStrategy", "Outsourcing Strategy"),
            _text("productionCosts", "Production Costs"),
        ),
    ),
    TopicSpec(
        slug="operations/quality-control",
        title="Quality Control",
        container="operations",
        data_key="qualityControlData",
        text_key="qualityControl",
        thread_key="qualityControlThreadId",
        assistant_env="OPENAI_QUALITY_CONTROL_ASSISTANT_ID",
        focus="quality standards, procedures, testing methods, customer feedback, continuous improvement and quality metrics",
        fields=(
            _text("qualityApproach", "Quality Approach"),
            _list("qualityStandards", "Quality Standards"),
            _text("qualityProcedures", "Quality Procedures"),
            _text("testingMethods", "Testing Methods"),
            _text("feedbackMechanisms", "Feedback Mechanisms"),
            _text("continuousImprovement", "Continuous Improvement"),
            _text("qualityMetrics", "Quality Metrics"),
        ),
    ),
    TopicSpec(
        slug="operations/inventory",
        title="Inventory Management",
        container="operations",
        data_key="inventoryData",
        text_key="inventory",
        thread_key="inventoryThreadId",
        assistant_env="OPENAI_INVENTORY_ASSISTANT_ID",
        focus="inventory approach, tracking systems, storage, reorder policies, suppliers, turnover and seasonality",
        fields=(
            _text("inventoryApproach", "Inventory Approach"),
            _text("trackingSystems", "Tracking Systems"),
            _text("storageSolutions", "Storage Solutions"),
            _text("reorderPolicies", "Reorder Policies"),
            _text("supplierManagement", "Supplier Management"),
            _text("inventoryTurnover", "Inventory Turnover"),
            _text("seasonalConsiderations", "Seasonal Considerations"),
        ),
    ),
    TopicSpec(
        slug="operations/technology",
        title="Technology",
        container="operations",
        data_key="technologyData",
        text_key="technology",
        thread_key="technologyThreadId",
        assistant_env="OPENAI_TECHNOLOGY_ASSISTANT_ID",
        focus="software and hardware, data management, cybersecurity, support, upgrades, integrations, training, disaster recovery and budget",
        fields=(
            _list("softwareSystems", "Software Systems"),
            _list("hardwareRequirements", "Hardware Requirements"),
            _text("dataManagement", "Data Management"),
            _text("cybersecurity", "Cybersecurity"),
            _text("techSupport", "Technical Support"),
            _text("futureUpgrades", "Future Upgrades"),
            _list("integrations", "Integrations"),
            _text("trainingNeeds", "Training Needs"),
            _text("disasterRecovery", "Disaster Recovery"),
            _text("techBudget", "Technology Budget"),
        ),
    ),
    TopicSpec(
        slug="operations/kpis",
        title="Key Performance Indicators (KPIs)",
        container="operations",
        data_key="kpiData",
        text_key="kpis",
        thread_key="kpisThreadId",
        assistant_env="OPENAI_KPI_ASSISTANT_ID",
        focus="KPIs across financial, operational, customer, employee and marketing areas, plus measurement frequency, reporting, benchmarks, owners and improvement process",
        fields=(
            _list("financialKPIs", "Financial KPIs"),
            _list("operationalKPIs", "Operational KPIs"),
            _list("customerKPIs", "Customer KPIs"),
            _list("employeeKPIs", "Employee KPIs"),
            _list("marketingKPIs", "Marketing KPIs"),
            _text("measurementFrequency", "Measurement Frequency"),
            _text("reportingMethods", "Reporting Methods"),
            _text("benchmarks", "Industry Benchmarks"),
            _text("responsibleParties", "Responsible Parties"),
            _text("improvementProcess", "Improvement Process"),
        ),
    ),
    TopicSpec(
        slug="financial-plan/revenue-projections",
        title="Revenue Projections",
        container="financialPlan",
        data_key="revenueProjectionsData",
        text_key="revenueProjections",
        thread_key="revenueProjectionsThreadId",
        assistant_env="OPENAI_REVENUE_PROJECTIONS_ASSISTANT_ID",
        focus="revenue streams, pricing, sales forecasts, growth assumptions, market size, seasonality and best and worst case scenarios",
        context_topics=("financial-plan/startup-costs",),
        fields=(
            _table(
                "revenueStreams",
                "Revenue Streams",
                Column("name", "Revenue Stream"),
                Column("description", "Description"),
                Column("projectedAmount", "Projected Amount", "money"),
                Column("timeframe", "Timeframe"),
                total_of="projectedAmount",
                total_label="Total Projected Revenue",
            ),
            _text("pricingStrategy", "Pricing Strategy"),
            _table(
                "salesForecast",
                "Sales Forecast",
                Column("period", "Period"),
                Column("amount", "Amount", "money"),
                Column("growthRate", "Growth Rate", "percent"),
            ),
            _text("growthAssumptions", "Growth Assumptions"),
            _text("marketSizeEstimates", "Market Size Estimates"),
            _text("seasonalityFactors", "Seasonality Factors"),
            _text("bestCaseScenario", "Best Case Scenario"),
            _text("worstCaseScenario", "Worst Case Scenario"),
        ),
    ),
    TopicSpec(
        slug="financial-plan/startup-costs",
        title="Startup Costs",
        container="financialPlan",
        data_key="startupCostData",
        text_key="startupCosts",
        thread_key="startupCostsThreadId",
        assistant_env="OPENAI_STARTUP_COSTS_ASSISTANT_ID",
        focus="one-time startup costs, monthly expenses, funding sources, the total startup cost and the break-even timeframe",
        fields=(
            _table(
                "oneTimeCosts",
                "One-Time Costs",
                Column("name", "Item"),
                Column("amount", "Amount", "money"),
                Column("description", "Description"),
                total_of="amount",
                total_label="Total One-Time Costs",
            ),
            _table(
                "monthlyExpenses",
                "Monthly Expenses",
                Column("name", "Item"),
                Column("amount", "Amount", "money"),
                Column("description", "Description"),
                total_of="amount",
                total_label="Total Monthly Expenses",
            ),
            _table(
                "fundingSources",
                "Funding Sources",
                Column("name", "Source"),
                Column("amount", "Amount", "money"),
                Column("description", "Description"),
                total_of="amount",
                total_label="Total Funding",
            ),
            _money("totalStartupCost", "Total Startup Cost"),
            _text("breakEvenTimeframe", "Break-Even Timeframe"),
            _text("additionalNotes", "Additional Notes"),
        ),
    ),
    TopicSpec(
        slug="financial-plan/expense-projections",
        title="Expense Projections",
        container="financialPlan",
        data_key="expenseProjectionsData",
        text_key="expenseProjections",
        thread_key="expenseProjectionsThreadId",
        assistant_env="OPENAI_EXPENSE_PROJECTIONS_ASSISTANT_ID",
        focus="fixed and variable expenses, expense forecasts, growth assumptions, cost saving strategies and how expenses are managed",
        context_topics=("financial-plan/startup-costs", "financial-plan/revenue-projections"),
        fields=(
            _table(
                "fixedExpenses",
                "Fixed Expenses",
                Column("category", "Category"),
                Column("description", "Description"),
                Column("monthlyAmount", "Monthly Amount", "money"),
                Column("annualAmount", "Annual Amount", "money"),
                total_of="monthlyAmount",
                total_label="Total Monthly Fixed Expenses",
            ),
            _table(
                "variableExpenses",
                "Variable Expenses",
                Column("category", "Category"),
                Column("description", "Description"),
                Column("percentOfRevenue", "% of Revenue", "percent"),
                Column("estimatedAmount", "Estimated Amount", "money"),
            ),
            _table(
                "expenseForecast",
                "Expense Forecast",
                Column("period", "Period"),
                Column("amount", "Amount", "money"),
                Column("growthRate", "Growth Rate", "percent"),
            ),
            _text("growthAssumptions", "Growth Assumptions"),
            _text("costSavingStrategies", "Cost Saving Strategies"),
            _text("expenseManagementApproach", "Expense Management Approach"),
        ),
    ),
    TopicSpec(
        slug="financial-plan/funding-requirements",
        title="Funding Requirements",
        container="financialPlan",
        data_key="fundingRequirementsData",
        text_key="fundingRequirements",
        thread_key="fundingRequirementsThreadId",
        assistant_env="OPENAI_FUNDING_REQUIREMENTS_ASSISTANT_ID",
        focus="the total funding needed, how funds will be used, funding sources and terms, timeline, expected return, exit strategy, risks and contingencies",
        context_topics=_FINANCIAL_CONTEXT,
        fields=(
            _money("totalFundingNeeded", "Total Funding Needed"),
            _table(
                "fundingUseBreakdown",
                "Use of Funds",
                Column("category", "Category"),
                Column("amount", "Amount", "money"),
                Column("description", "Description"),
                total_of="amount",
                total_label="Total Allocated",
            ),
            _table(
                "fundingSources",
                "Funding Sources",
                Column("source", "Source"),
                Column("amount", "Amount", "money"),
                Column("terms", "Terms"),
                total_of="amount",
                total_label="Total Funding",
            ),
            _text("fundingTimeline", "Funding Timeline"),
            _text("expectedReturn", "Expected Return"),
            _text("exitStrategy", "Exit Strategy"),
            _list("risks", "Risks"),
            _text("contingencyPlans", "Contingency Plans"),
        ),
    ),
    TopicSpec(
        slug="financial-plan/break-even-analysis",
        title="Break-Even Analysis",
        container="financialPlan",
        data_key="breakEvenData",
        text_key="breakEvenAnalysis",
        thread_key="breakEvenThreadId",
        assistant_env="OPENAI_BREAK_EVEN_ASSISTANT_ID",
        focus="fixed costs per period, variable cost and price per unit, contribution margin, the break-even point in units and revenue, time to break even and the assumptions behind it",
        context_topics=_FINANCIAL_CONTEXT,
        fields=(
            _money("fixedCosts", "Fixed Costs"),
            _money("variableCostPerUnit", "Variable Costs Per Unit"),
            _money("unitPrice", "Price Per Unit"),
            _money("contributionMargin", "Contribution Margin Per Unit"),
            _text("breakEvenUnits", "Break-Even Point (Units)"),
            _money("breakEvenRevenue", "Break-Even Point (Revenue)"),
            _text("timeToBreakEven", "Projected Time to Break Even"),
            _list("assumptions", "Key Assumptions"),
            _text("sensitivityAnalysis", "Sensitivity Analysis"),
        ),
    ),
    TopicSpec(
        slug="financial-plan/financial-metrics",
        title="Financial Metrics",
        container="financialPlan",
        data_key="financialMetrics",
        text_key="financialMetricsText",
        thread_key="financialMetricsThreadId",
        assistant_env="OPENAI_FINANCIAL_METRICS_ASSISTANT_ID",
        focus="profitability, liquidity and efficiency ratios, growth and customer metrics, financial goals, key performance indicators and industry benchmarks",
        context_topics=_FINANCIAL_CONTEXT,
        fields=(
            _table("profitabilityRatios", "Profitability Ratios", *_METRIC_COLUMNS),
            _table("liquidityRatios", "Liquidity Ratios", *_METRIC_COLUMNS),
            _table("efficiencyRatios", "Efficiency Ratios", *_METRIC_COLUMNS),
            _table("growthMetrics", "Growth Metrics", *_METRIC_COLUMNS),
            _table("customerMetrics", "Customer Metrics", *_METRIC_COLUMNS),
            _text("financialGoals", "Financial Goals"),
            _list("keyPerformanceIndicators", "Key Performance Indicators"),
            _text("industryBenchmarks", "Industry Benchmarks"),
        ),
    ),
)


_BY_SLUG: Dict[str, TopicSpec] = {t.slug: t for t in TOPICS}


def get_topic(slug: str) -> Optional[TopicSpec]:
    return _BY_SLUG.get(slug.strip("/"))


def all_topics() -> List[TopicSpec]:
    return list(TOPICS)
