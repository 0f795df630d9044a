"""
Streamlit Frontend for Finance Tracker

Pages:
1. Dashboard: month navigation, summary cards, AI advice, charts, goals
2. Transactions: form (with receipt auto-fill) and list with edit/delete
3. Goals: form and list with progress bars
4. Reports: date range, CSV and PDF downloads
5. Settings: service status and backup export/import

DESIGN PRINCIPLES:
1. Forms are validated before anything is stored
2. Deletes always ask for confirmation
3. AI results only pre-fill forms; the user saves them
4. Failures are shown as plain messages, never tracebacks
"""

import asyncio
from datetime import date

import streamlit as st

from finance_tracker.config import validate_all_settings
from finance_tracker.ledger import format_brl, shift_month
from finance_tracker.ledger.reports import format_date_br
from finance_tracker.models.ledger import (
    GoalDraft,
    TransactionType,
    categories_for,
)
from finance_tracker.orchestrator import AppComponents, create_app_components
from finance_tracker.validation import ValidationFailedError, get_user_friendly_summary


MONTH_NAMES = [
    "Janeiro", "Fevereiro", "Março", "Abril", "Maio", "Junho",
    "Julho", "Agosto", "Setembro", "Outubro", "Novembro", "Dezembro",
]


# Page configuration
st.set_page_config(
    page_title="Controle Financeiro",
    page_icon="💰",
    layout="wide",
    initial_sidebar_state="expanded",
)


def run_async(coro):
    """Helper to run async functions in Streamlit."""
    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


@st.cache_resource
def get_components() -> AppComponents:
    """Get or create application components (cached)."""
    return create_app_components()


def main():
    """Main application entry point."""
    components = get_components()

    st.sidebar.title("💰 Controle Financeiro")
    st.sidebar.markdown("---")

    page = st.sidebar.radio(
        "Navegar para:",
        ["📊 Painel", "💸 Transações", "🎯 Metas", "📄 Relatórios", "⚙️ Configurações"],
        index=0,
    )

    if page == "📊 Painel":
        render_dashboard_page(components)
    elif page == "💸 Transações":
        render_transactions_page(components)
    elif page == "🎯 Metas":
        render_goals_page(components)
    elif page == "📄 Relatórios":
        render_reports_page(components)
    elif page == "⚙️ Configurações":
        render_settings_page(components)


# =============================================================================
# DASHBOARD
# =============================================================================

def render_dashboard_page(components: AppComponents):
    st.title("📊 Painel")

    if "selected_month" not in st.session_state:
        today = date.today()
        st.session_state.selected_month = (today.year, today.month)
    year, month = st.session_state.selected_month

    col_prev, col_label, col_next = st.columns([1, 3, 1])
    with col_prev:
        if st.button("◀ Anterior"):
            st.session_state.selected_month = shift_month(year, month, -1)
            st.session_state.pop("advice", None)
            st.rerun()
    with col_label:
        st.subheader(f"{MONTH_NAMES[month - 1]} de {year}")
    with col_next:
        if st.button("Próximo ▶"):
            st.session_state.selected_month = shift_month(year, month, 1)
            st.session_state.pop("advice", None)
            st.rerun()

    dashboard = components.dashboard
    summary = dashboard.summary(year, month)

    cols = st.columns(5)
    cols[0].metric("Receitas", format_brl(summary.total_income))
    cols[1].metric("Despesas Fixas", format_brl(summary.total_fixed_expenses))
    cols[2].metric("Despesas Variáveis", format_brl(summary.total_variable_expenses))
    cols[3].metric("Investimentos", format_brl(summary.total_investments))
    cols[4].metric("Saldo Líquido", format_brl(summary.net_balance))

    st.markdown("---")
    st.markdown("### 🤖 Consultor Financeiro IA")
    if st.button("Gerar análise do mês"):
        with st.spinner("Analisando suas finanças..."):
            advice, _ = run_async(
                components.advisory.get_advice(summary, dashboard.month_transactions(year, month))
            )
        st.session_state.advice = advice
    if st.session_state.get("advice"):
        st.markdown(st.session_state.advice)

    st.markdown("---")
    st.markdown("### 📈 Histórico dos últimos meses")
    history = dashboard.history()
    st.bar_chart(
        {
            "Mês": [bucket.label for bucket in history],
            "Receitas": [float(bucket.income) for bucket in history],
            "Despesas": [float(bucket.expense) for bucket in history],
            "Investimentos": [float(bucket.investment) for bucket in history],
        },
        x="Mês",
        y=["Receitas", "Despesas", "Investimentos"],
        stack=False,
    )

    col_cat, col_type = st.columns(2)
    with col_cat:
        st.markdown("#### Despesas por categoria")
        by_category = dashboard.expenses_by_category(year, month)
        if by_category:
            st.bar_chart(
                {
                    "Categoria": [item.category.value for item in by_category],
                    "Total": [float(item.total) for item in by_category],
                },
                x="Categoria",
                y="Total",
            )
        else:
            st.info("Nenhuma despesa neste mês.")
    with col_type:
        st.markdown("#### Despesas por tipo")
        by_type = dashboard.expenses_by_type(year, month)
        if by_type:
            st.bar_chart(
                {
                    "Tipo": [item.label for item in by_type],
                    "Total": [float(item.total) for item in by_type],
                },
                x="Tipo",
                y="Total",
            )
        else:
            st.info("Nenhuma despesa neste mês.")

    st.markdown("### 🎯 Metas")
    render_goal_progress(components)


def render_goal_progress(components: AppComponents):
    progress_list = components.dashboard.goals_progress()
    if not progress_list:
        st.info("Nenhuma meta cadastrada.")
        return
    for progress in progress_list:
        status = "✅ Concluída" if progress.is_completed else f"Faltam {format_brl(progress.remaining)}"
        st.markdown(
            f"**{progress.name}**: {format_brl(progress.current_amount)} de "
            f"{format_brl(progress.target_amount)} ({progress.percentage:.0f}%) · {status}"
        )
        st.progress(progress.bar_width / 100)


# =============================================================================
# TRANSACTIONS
# =============================================================================

def render_transactions_page(components: AppComponents):
    st.title("💸 Transações")
    flow = components.transactions
    store = components.store

    editing_id = st.session_state.get("editing_transaction_id")
    editing = store.get_transaction(editing_id) if editing_id else None

    if "transaction_draft" not in st.session_state:
        st.session_state.transaction_draft = (
            flow.draft_from(editing) if editing else flow.new_draft()
        )
    draft = st.session_state.transaction_draft

    st.subheader("✏️ Editando Transação" if editing else "Adicionar Nova Transação")

    transaction_type = st.selectbox(
        "Tipo",
        options=list(TransactionType),
        index=list(TransactionType).index(draft.type),
        format_func=lambda t: t.label,
    )
    if transaction_type != draft.type:
        draft = flow.change_type(draft, transaction_type)
        st.session_state.transaction_draft = draft

    uploaded = st.file_uploader(
        "Comprovante (opcional)",
        type=["png", "jpg", "jpeg", "webp", "pdf"],
    )
    if uploaded and st.button("✨ Preencher com IA"):
        ok, message = components.receipts.check_upload(uploaded.type, uploaded.size)
        if not ok:
            st.error(message)
        else:
            quality = components.receipts.assess_quality(uploaded.getvalue(), uploaded.type)
            if quality is not None and quality.is_usable and quality.issues:
                st.info("📷 " + "; ".join(quality.issues))
            with st.spinner("Lendo comprovante..."):
                draft, filled, message = run_async(
                    components.receipts.autofill(draft, uploaded.getvalue(), uploaded.type)
                )
            st.session_state.transaction_draft = draft
            (st.success if filled else st.warning)(message)

    goals = store.list_goals()
    with st.form("transaction_form"):
        description = st.text_input("Descrição", value=draft.description)
        amount = st.number_input(
            "Valor (R$)",
            min_value=0.0,
            value=float(draft.amount),
            step=0.01,
            format="%.2f",
        )
        tx_date = st.date_input("Data", value=date.fromisoformat(draft.date))
        categories = list(categories_for(draft.type))
        category = st.selectbox(
            "Categoria",
            options=categories,
            index=categories.index(draft.category) if draft.category in categories else 0,
            format_func=lambda c: c.value,
        )
        goal_id = None
        if draft.type == TransactionType.INVESTMENT and goals:
            goal_options = [None] + [goal.id for goal in goals]
            goal_names = {goal.id: goal.name for goal in goals}
            goal_id = st.selectbox(
                "Vincular a uma meta",
                options=goal_options,
                index=goal_options.index(draft.goal_id) if draft.goal_id in goal_options else 0,
                format_func=lambda g: "Nenhuma" if g is None else goal_names[g],
            )
        submitted = st.form_submit_button("Salvar", type="primary")

    if editing and st.button("Cancelar edição"):
        reset_transaction_form()
        st.rerun()

    if submitted:
        draft = draft.model_copy(update={
            "description": description.strip(),
            "amount": round(amount, 2),
            "date": tx_date.isoformat(),
            "category": category,
            "goal_id": goal_id,
        })
        try:
            _, result = flow.save(draft, transaction_id=editing.id if editing else None)
        except ValidationFailedError as e:
            st.session_state.transaction_draft = draft
            st.error(get_user_friendly_summary(e.result))
        else:
            if result.warnings:
                st.warning(get_user_friendly_summary(result))
            st.success("Transação salva!")
            reset_transaction_form()
            st.rerun()

    st.markdown("---")
    render_transaction_list(components)


def reset_transaction_form():
    st.session_state.pop("transaction_draft", None)
    st.session_state.pop("editing_transaction_id", None)


def render_transaction_list(components: AppComponents):
    transactions = sorted(
        components.store.list_transactions(),
        key=lambda t: t.date,
        reverse=True,
    )
    if not transactions:
        st.info("Nenhuma transação registrada.")
        return

    pending_delete = st.session_state.get("confirm_delete_transaction")
    for transaction in transactions:
        sign = "+" if transaction.type == TransactionType.INCOME else "-"
        col_info, col_edit, col_delete = st.columns([6, 1, 1])
        with col_info:
            st.markdown(
                f"**{transaction.description}** · {format_date_br(transaction.date)} · "
                f"{transaction.type.label} · {transaction.category.value} · "
                f"{sign} {format_brl(transaction.amount)}"
            )
        with col_edit:
            if st.button("Editar", key=f"edit_{transaction.id}"):
                reset_transaction_form()
                st.session_state.editing_transaction_id = transaction.id
                st.rerun()
        with col_delete:
            if st.button("Excluir", key=f"delete_{transaction.id}"):
                st.session_state.confirm_delete_transaction = transaction.id
                st.rerun()

        if pending_delete == transaction.id:
            st.warning("Tem certeza de que deseja excluir esta transação?")
            col_yes, col_no = st.columns(2)
            if col_yes.button("Sim, excluir", key=f"confirm_{transaction.id}"):
                components.transactions.delete(transaction.id, confirmed=True)
                st.session_state.pop("confirm_delete_transaction", None)
                if st.session_state.get("editing_transaction_id") == transaction.id:
                    reset_transaction_form()
                st.rerun()
            if col_no.button("Cancelar", key=f"cancel_{transaction.id}"):
                st.session_state.pop("confirm_delete_transaction", None)
                st.rerun()


# =============================================================================
# GOALS
# =============================================================================

def render_goals_page(components: AppComponents):
    st.title("🎯 Metas")
    flow = components.goals
    store = components.store

    editing_id = st.session_state.get("editing_goal_id")
    editing = store.get_goal(editing_id) if editing_id else None
    draft = flow.draft_from(editing) if editing else GoalDraft(deadline=date.today().isoformat())

    st.subheader("✏️ Editando Meta" if editing else "Nova Meta")
    with st.form("goal_form"):
        name = st.text_input("Nome", value=draft.name)
        target = st.number_input("Valor alvo (R$)", min_value=0.0, value=float(draft.target_amount), step=0.01)
        current = st.number_input("Valor atual (R$)", min_value=0.0, value=float(draft.current_amount), step=0.01)
        deadline = st.date_input("Data limite", value=date.fromisoformat(draft.deadline))
        notes = st.text_area("Observações", value=draft.notes)
        submitted = st.form_submit_button("Salvar", type="primary")

    if submitted:
        draft = GoalDraft(
            name=name,
            target_amount=round(target, 2),
            current_amount=round(current, 2),
            deadline=deadline.isoformat(),
            notes=notes,
        )
        try:
            _, result = flow.save(draft, goal_id=editing.id if editing else None)
        except ValidationFailedError as e:
            st.error(get_user_friendly_summary(e.result))
        else:
            if result.warnings:
                st.warning(get_user_friendly_summary(result))
            st.session_state.pop("editing_goal_id", None)
            st.rerun()

    st.markdown("---")
    pending_delete = st.session_state.get("confirm_delete_goal")
    for progress in flow.progress():
        col_info, col_edit, col_delete = st.columns([6, 1, 1])
        with col_info:
            st.markdown(
                f"**{progress.name}**: {format_brl(progress.current_amount)} de "
                f"{format_brl(progress.target_amount)} ({progress.percentage:.0f}%)"
            )
            st.progress(progress.bar_width / 100)
        with col_edit:
            if st.button("Editar", key=f"edit_goal_{progress.goal_id}"):
                st.session_state.editing_goal_id = progress.goal_id
                st.rerun()
        with col_delete:
            if st.button("Excluir", key=f"delete_goal_{progress.goal_id}"):
                st.session_state.confirm_delete_goal = progress.goal_id
                st.rerun()

        if pending_delete == progress.goal_id:
            st.warning("Tem certeza de que deseja excluir esta meta?")
            col_yes, col_no = st.columns(2)
            if col_yes.button("Sim, excluir", key=f"confirm_goal_{progress.goal_id}"):
                flow.delete(progress.goal_id, confirmed=True)
                st.session_state.pop("confirm_delete_goal", None)
                st.session_state.pop("editing_goal_id", None)
                st.rerun()
            if col_no.button("Cancelar", key=f"cancel_goal_{progress.goal_id}"):
                st.session_state.pop("confirm_delete_goal", None)
                st.rerun()


# =============================================================================
# REPORTS
# =============================================================================

def render_reports_page(components: AppComponents):
    st.title("📄 Relatórios Financeiros")
    today = date.today()

    col_start, col_end = st.columns(2)
    start = col_start.date_input("Data inicial", value=today.replace(day=1))
    end = col_end.date_input("Data final", value=today)
    start_date, end_date = start.isoformat(), end.isoformat()

    reports = components.reports
    rows = reports.rows(start_date, end_date)

    csv_name, csv_content = reports.csv(start_date, end_date)
    pdf_name, pdf_content = reports.pdf(start_date, end_date)

    col_csv, col_pdf = st.columns(2)
    col_csv.download_button(
        "Exportar CSV (Excel)",
        data=csv_content.encode("utf-8"),
        file_name=csv_name,
        mime="text/csv",
    )
    col_pdf.download_button(
        "Exportar PDF",
        data=pdf_content,
        file_name=pdf_name,
        mime="application/pdf",
    )

    if rows:
        st.table([row.model_dump() for row in rows])
    else:
        st.info("Nenhuma transação no período selecionado.")


# =============================================================================
# SETTINGS
# =============================================================================

def render_settings_page(components: AppComponents):
    st.title("⚙️ Configurações")

    st.markdown("### Status dos serviços")
    status = validate_all_settings()
    services = [
        ("Gemini (IA)", "gemini"),
        ("Armazenamento", "storage"),
        ("Google Sheets", "google_sheets"),
    ]
    for name, key in services:
        if key not in status:
            continue
        if status[key]:
            st.success(f"✅ {name} - Configurado")
        else:
            error = status.get(f"{key}_error", "Não configurado")
            st.error(f"❌ {name} - {error}")

    st.markdown("---")
    st.markdown("### Backup")
    if st.button("Gerar backup"):
        st.session_state.backup_file = components.backup.export()
    if st.session_state.get("backup_file"):
        file_name, content = st.session_state.backup_file
        st.download_button(
            "📥 Baixar backup (JSON)",
            data=content.encode("utf-8"),
            file_name=file_name,
            mime="application/json",
        )

    uploaded = st.file_uploader("Importar backup", type=["json"])
    if uploaded and st.button("📤 Importar", type="primary"):
        ok, message = components.backup.restore(uploaded.getvalue())
        (st.success if ok else st.error)(message)


if __name__ == "__main__":
    main()
