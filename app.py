"""Streamlit web application: upload a PBIP project, edit its model, download the document."""

import asyncio
import logging
import streamlit as st

from pbip_doc.editing import (
    add_business_rule,
    add_page_explanation,
    delete_measure,
    delete_relationship,
    delete_table,
    remove_business_rule,
    remove_page_explanation,
    update_measure_description,
    update_metadata,
)
from pbip_doc.enrichment.ai_descriptions import MeasureDescriptionGenerator
from pbip_doc.generators.document import document_filename, render_document
from pbip_doc.generators.mermaid import generate_er_diagram
from pbip_doc.models import DashboardObjective
from pbip_doc.parsers.file_classifier import ExtractionError
from pbip_doc.parsers.pbip_parser import PBIPParser
from pbip_doc.parsers.sources import load_zip_sources
from pbip_doc.utils.settings import load_settings, save_settings

logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
logger = logging.getLogger("pbip_doc.app")

# ---------------------------------------------------------------------------
# Page config
# ---------------------------------------------------------------------------
st.set_page_config(
    page_title="Power BI Doc Generator",
    page_icon=":bar_chart:",
    layout="wide",
)

# ---------------------------------------------------------------------------
# Session state
# ---------------------------------------------------------------------------
if "settings" not in st.session_state:
    st.session_state.settings = load_settings()
if "model" not in st.session_state:
    st.session_state.model = None
if "warnings" not in st.session_state:
    st.session_state.warnings = ()
if "upload_id" not in st.session_state:
    st.session_state.upload_id = None

settings = st.session_state.settings


def _set_model(model):
    st.session_state.model = model
    st.rerun()


# ---------------------------------------------------------------------------
# Sidebar
# ---------------------------------------------------------------------------
with st.sidebar:
    st.header("Settings")
    settings.include_diagram = st.checkbox("Include relationship diagram", value=settings.include_diagram)
    settings.save_secrets = st.checkbox(
        "Remember API key on this machine",
        value=settings.save_secrets,
    )
    with st.expander("Advanced"):
        settings.ai_model = st.text_input("Claude model", value=settings.ai_model)
        settings.max_file_chars = int(st.number_input(
            "Max characters per file", min_value=1_000, value=settings.max_file_chars, step=100_000,
        ))
    if st.button("Save Settings"):
        save_settings(settings)
        st.success("Saved!")

st.title("Power BI Doc Generator")
st.caption("Automatic documentation of Power BI reports")

# ---------------------------------------------------------------------------
# Step 1: upload
# ---------------------------------------------------------------------------
st.header("Step 1 — Upload the project")
uploaded = st.file_uploader(
    "Zip the folder ending in .SemanticModel and upload it here",
    type=["zip"],
)

if uploaded is not None and uploaded.file_id != st.session_state.upload_id:
    st.session_state.upload_id = uploaded.file_id
    skipped = []
    try:
        sources = load_zip_sources(uploaded.getvalue(), settings.max_file_chars, skipped)
        result = PBIPParser(
            max_file_chars=settings.max_file_chars,
            default_title=settings.default_title,
        ).parse(sources)
    except ExtractionError as e:
        logger.warning(f"Upload rejected: {e}")
        st.session_state.model = None
        st.error(str(e))
    else:
        st.session_state.model = result.model
        st.session_state.warnings = tuple(skipped) + result.warnings

model = st.session_state.model
if model is None:
    st.stop()

if st.session_state.warnings:
    with st.expander(f"{len(st.session_state.warnings)} file(s) could not be fully read"):
        for warning in st.session_state.warnings:
            st.write(f"- {warning}")

# ---------------------------------------------------------------------------
# Step 2: edit
# ---------------------------------------------------------------------------
st.header("Step 2 — Review and edit")
tab_meta, tab_measures, tab_tables, tab_rels = st.tabs(
    ["Report", "Measures", "Tables", "Relationships"]
)

with tab_meta:
    meta = model.metadata
    with st.form("metadata"):
        title = st.text_input("Title", value=meta.title)
        description = st.text_area("Description", value=meta.description or "")
        area = st.text_input("Area", value=meta.area or "")
        author = st.text_input("Author", value=meta.author or "")
        update_frequency = st.text_input("Update frequency", value=meta.update_frequency or "")
        has_rls = st.checkbox("Row-level security", value=meta.has_rls)
        st.markdown("**Objective**")
        obj = meta.objective
        objective = DashboardObjective(
            description=st.text_area("What the dashboard is for", value=obj.description),
            problem_resolved=st.text_input("Problem it solves", value=obj.problem_resolved),
            decision_helper=st.text_input("Decisions it supports", value=obj.decision_helper),
            target_audience=st.text_input("Target audience", value=obj.target_audience),
            main_question=st.text_input("Main question answered", value=obj.main_question),
        )
        if st.form_submit_button("Apply"):
            try:
                _set_model(update_metadata(
                    model,
                    title=title,
                    description=description or None,
                    area=area or None,
                    author=author or None,
                    update_frequency=update_frequency or None,
                    has_rls=has_rls,
                    objective=objective,
                ))
            except ValueError as e:
                st.error(str(e))

    st.subheader("Business rules")
    for rule in meta.business_rules:
        col_text, col_del = st.columns([6, 1])
        col_text.markdown(f"**{rule.id}. {rule.title}** — {rule.description}")
        if col_del.button("Delete", key=f"rule-{rule.id}"):
            _set_model(remove_business_rule(model, rule.id))
    with st.form("new_rule", clear_on_submit=True):
        rule_title = st.text_input("Rule")
        rule_description = st.text_area("Rule description")
        if st.form_submit_button("Add rule") and rule_title:
            _set_model(add_business_rule(model, rule_title, rule_description))

    st.subheader("Report pages")
    for page in meta.page_explanations:
        col_text, col_del = st.columns([6, 1])
        col_text.markdown(f"**{page.title}** — {page.objective}")
        if col_del.button("Delete", key=f"page-{page.id}"):
            _set_model(remove_page_explanation(model, page.id))
    with st.form("new_page", clear_on_submit=True):
        page_title = st.text_input("Page")
        page_details = {
            "objective": st.text_input("Objective"),
            "kpis": st.text_input("KPIs"),
            "filters": st.text_input("Filters"),
            "observations": st.text_area("Observations"),
        }
        if st.form_submit_button("Add page") and page_title:
            _set_model(add_page_explanation(model, page_title, **page_details))

with tab_measures:
    if settings.anthropic_api_key or st.checkbox("Use Claude for measure descriptions"):
        settings.anthropic_api_key = st.text_input(
            "API Key (Claude AI)", value=settings.anthropic_api_key, type="password",
        )
        if settings.anthropic_api_key and st.button("Describe measures with AI"):
            with st.spinner("Asking Claude..."):
                enricher = MeasureDescriptionGenerator(
                    api_key=settings.anthropic_api_key, model=settings.ai_model,
                )
                enriched = asyncio.run(enricher.enrich_model(model))
            _set_model(enriched)

    if not model.measures:
        st.info("No measures found.")
    for i, m in enumerate(model.measures):
        with st.expander(f"{m.table} · {m.name}"):
            st.code(m.formula, language="sql")
            new_description = st.text_input("Description", value=m.description, key=f"desc-{i}")
            col_save, col_del = st.columns(2)
            if col_save.button("Save description", key=f"save-{i}"):
                _set_model(update_measure_description(model, i, new_description))
            if col_del.button("Delete measure", key=f"del-m-{i}"):
                _set_model(delete_measure(model, i))

with tab_tables:
    st.caption("Deleting a table also removes its measures and relationships.")
    for t in sorted(model.tables, key=lambda t: t.name):
        col_text, col_del = st.columns([6, 1])
        col_text.markdown(
            f"**{t.name}** — {len(t.columns)} columns, {t.measure_count} measures"
            + (f"  \n`{', '.join(t.columns)}`" if t.columns else "")
        )
        if col_del.button("Delete", key=f"del-t-{t.name}"):
            _set_model(delete_table(model, t.name))

with tab_rels:
    if not model.relationships:
        st.info("No relationships defined.")
    for i, r in enumerate(model.relationships):
        col_text, col_del = st.columns([6, 1])
        col_text.markdown(
            f"{r.from_table}.{r.from_column} → {r.to_table}.{r.to_column} ({r.cardinality})"
        )
        if col_del.button("Delete", key=f"del-r-{i}"):
            _set_model(delete_relationship(model, i))

# ---------------------------------------------------------------------------
# Step 3: diagram and document
# ---------------------------------------------------------------------------
st.header("Step 3 — Diagram and document")
diagram = None
if settings.include_diagram and model.tables and model.relationships:
    diagram = generate_er_diagram(list(model.tables), list(model.relationships))
    st.code(diagram, language="mermaid")

document = render_document(model, diagram)
st.download_button(
    "Download documentation",
    data=document,
    file_name=document_filename(model.metadata.title),
    mime="text/markdown",
)
with st.expander("Preview"):
    st.markdown(document.decode("utf-8"))
