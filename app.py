"""
Main NiceGUI application for the DAG canvas.

Renders the canvas as an interactive_image whose SVG content comes from
GraphVisualizer, wires pointer/keyboard events to the InteractionController,
and hosts the node property drawer and the agent chat panel.
"""

import asyncio
import json
import logging
import sys

from dotenv import load_dotenv
from nicegui import run, ui

load_dotenv()

from dagcanvas.agent_session import AgentSession
from dagcanvas.ai_agent import AIAgent
from dagcanvas.canvas_engine import CanvasEngine
from dagcanvas.config import (
    ensure_api_key_in_env,
    get_agent_settings,
    get_api_key,
    load_config,
    save_config,
    set_api_key,
    validate_api_key,
)
from dagcanvas.edit import CANVAS_HEIGHT, CANVAS_WIDTH, MODE_CONNECT, MODE_SELECT, InteractionController
from dagcanvas.edit.handlers import setup_edit_handlers
from dagcanvas.graph_viz import GraphVisualizer
from dagcanvas.layout import DIRECTION_LR, DIRECTION_TB
from dagcanvas.paths import ensure_db_dir
from dagcanvas.storage import create_store

logging.basicConfig(level=logging.INFO, format='%(asctime)s %(levelname)s %(name)s: %(message)s')
logger = logging.getLogger(__name__)

EXPORT_FILENAME = 'dag-canvas.json'

# Ensure required directories exist on startup
ensure_db_dir()

if not ensure_api_key_in_env():
    logger.info("No agent API key found. The canvas works without one; Ask Agent will prompt for it.")


def show_api_key_dialog(on_complete=None):
    """Show modal dialog to configure the agent API key."""
    with ui.dialog() as dialog, ui.card().classes('w-[500px]'):
        ui.label('Configure API Key').classes('text-lg font-bold')

        current_key = get_api_key()
        masked_key = f"{current_key[:7]}...{current_key[-4:]}" if current_key and len(current_key) > 15 else ""
        if masked_key:
            ui.label(f'Current key: {masked_key}').classes('text-gray-500 text-sm mb-2')

        api_key_input = ui.input('xAI API Key', placeholder='xai-...', password=True,
                                 password_toggle_button=True).classes('w-full')
        status_label = ui.label('').classes('text-sm')

        async def do_validate():
            key = api_key_input.value.strip()
            if not key:
                status_label.text = '❌ Please enter an API key'
                status_label.classes('text-red-500', remove='text-green-500 text-yellow-500')
                return

            status_label.text = '⏳ Validating...'
            status_label.classes('text-yellow-500', remove='text-red-500 text-green-500')

            is_valid, message = await run.io_bound(validate_api_key, key)

            if is_valid:
                status_label.text = f'✅ {message}'
                status_label.classes('text-green-500', remove='text-red-500 text-yellow-500')
                set_api_key(key)
                ui.notify('API key saved successfully!', type='positive')
                await asyncio.sleep(1)
                dialog.close()
                if on_complete:
                    on_complete()
            else:
                status_label.text = f'❌ {message}'
                status_label.classes('text-red-500', remove='text-green-500 text-yellow-500')

        with ui.row().classes('w-full justify-end gap-2 mt-4'):
            ui.button('Cancel', on_click=dialog.close).props('flat')
            ui.button('Validate & Save', on_click=do_validate).props('color=primary')

    dialog.open()
    return dialog


def show_settings_dialog(session: AgentSession):
    """Edit the agent section of config.json (model, temperature, system prompt)."""
    settings = session.settings
    with ui.dialog() as dialog, ui.card().classes('w-[520px]'):
        ui.label('Agent Settings').classes('text-lg font-bold')
        model_input = ui.input('Model', value=settings.model).classes('w-full')
        temp_input = ui.number('Temperature', value=settings.temperature, min=0.0, max=1.2, step=0.1).classes('w-full')
        prompt_input = ui.textarea('System prompt', value=settings.system_prompt).classes('w-full').props('outlined rows=4')

        def do_save():
            config = load_config()
            config['agent'] = {
                'model': (model_input.value or '').strip(),
                'temperature': temp_input.value,
                'system_prompt': prompt_input.value or '',
                'web_scrape_enabled': settings.web_scrape_enabled,
            }
            save_config(config)
            session.settings = get_agent_settings(config)
            ui.notify('Settings saved.', type='positive')
            dialog.close()

        with ui.row().classes('w-full justify-end gap-2 mt-4'):
            ui.button('API Key', on_click=lambda: show_api_key_dialog()).props('flat')
            ui.button('Cancel', on_click=dialog.close).props('flat')
            ui.button('Save', on_click=do_save).props('color=primary')
    dialog.open()


async def export_canvas(engine: CanvasEngine):
    """Download the canvas as JSON and copy the same text to the clipboard."""
    payload = engine.export_document()
    ui.download(payload.encode('utf-8'), EXPORT_FILENAME)
    await ui.run_javascript(f'navigator.clipboard.writeText({json.dumps(payload)})')
    ui.notify('Exported JSON (downloaded + copied).', position='bottom')


# UI Construction - encapsulated in page function so every tab gets its own engine
@ui.page('/')
def main_page():
    ui.dark_mode().enable()
    ui.query('body').style('margin: 0; padding: 0; overflow: hidden;')

    config = load_config()
    engine = CanvasEngine(create_store(config), CANVAS_WIDTH, CANVAS_HEIGHT)
    controller = InteractionController(engine)
    session = AgentSession(engine, AIAgent(), get_agent_settings(config), io_bound=run.io_bound)
    visualizer = GraphVisualizer()

    state = {'editor_key': None, 'chat_open': False, 'agent_error': None}

    engine.set_on_notice(lambda message: ui.notify(message, position='bottom', timeout=2200))

    # --- Canvas ---

    def draw_canvas():
        canvas.content = visualizer.generate_svg(
            engine.graph,
            engine.viewport,
            engine.width,
            engine.height,
            selected_node_id=controller.selection.node_id,
            selected_edge_id=controller.selection.edge_id,
            connect_from=controller.connect_from,
            pointer=engine.last_pointer_graph,
        )

    def refresh_canvas():
        draw_canvas()
        render_toolbar_state.refresh()
        editor_key = (controller.selection.node_id, controller.editor_open)
        if editor_key != state['editor_key']:
            state['editor_key'] = editor_key
            render_editor.refresh()

    handlers = setup_edit_handlers(controller, refresh_canvas)

    # --- Toolbar ---

    def set_mode(mode):
        controller.set_mode(mode)
        refresh_canvas()

    def add_node():
        controller.add_node()
        refresh_canvas()

    def delete_selection():
        controller.delete_selection()
        refresh_canvas()

    def do_view(action):
        action()
        refresh_canvas()

    def do_layout(direction):
        engine.auto_layout(direction)
        refresh_canvas()

    def do_undo():
        if not engine.undo():
            ui.notify('Nothing to undo.', position='bottom')
        controller.sync_with_graph()
        refresh_canvas()

    async def do_export():
        await export_canvas(engine)

    def open_import():
        with ui.dialog() as dialog, ui.card().classes('w-[600px]'):
            ui.label('Import JSON').classes('text-lg font-bold')
            ui.label('Paste a {"nodes": [...], "edges": [...]} document. It replaces the current canvas.') \
                .classes('text-gray-400 text-sm')
            text_input = ui.textarea(placeholder='{"nodes": [], "edges": []}').classes('w-full') \
                .props('outlined rows=12')
            error_label = ui.label('').classes('text-red-500 text-sm')

            def do_import():
                if engine.import_document(text_input.value or ''):
                    controller.reset()
                    refresh_canvas()
                    dialog.close()
                else:
                    error_label.text = engine.last_notice or 'Import failed.'

            with ui.row().classes('w-full justify-end gap-2 mt-2'):
                ui.button('Cancel', on_click=dialog.close).props('flat')
                ui.button('Import', on_click=do_import).props('color=primary')
        dialog.open()

    def toggle_chat():
        state['chat_open'] = not state['chat_open']
        chat_panel.set_visibility(state['chat_open'])

    with ui.header().classes('bg-black/60 backdrop-blur-md items-center gap-2 py-1'):
        ui.label('DAG Canvas').classes('text-lg font-bold mr-4')

        @ui.refreshable
        def render_toolbar_state():
            ui.button('Select', on_click=lambda: set_mode(MODE_SELECT)) \
                .props(f'dense {"unelevated" if controller.mode == MODE_SELECT else "flat"} icon=near_me')
            ui.button('Connect', on_click=lambda: set_mode(MODE_CONNECT)) \
                .props(f'dense {"unelevated" if controller.mode == MODE_CONNECT else "flat"} icon=timeline')
            ui.label(f'{round(engine.viewport.zoom * 100)}%').classes('text-xs text-gray-400 w-10')

        render_toolbar_state()
        ui.separator().props('vertical')
        ui.button(on_click=add_node).props('flat dense icon=add').tooltip('Add node')
        ui.button(on_click=delete_selection).props('flat dense icon=delete').tooltip('Delete selection')
        ui.separator().props('vertical')
        ui.button(on_click=lambda: do_view(engine.zoom_in)).props('flat dense icon=zoom_in').tooltip('Zoom in')
        ui.button(on_click=lambda: do_view(engine.zoom_out)).props('flat dense icon=zoom_out').tooltip('Zoom out')
        ui.button(on_click=lambda: do_view(engine.fit_to_view)).props('flat dense icon=center_focus_strong') \
            .tooltip('Center')
        with ui.dropdown_button('Layout', icon='account_tree').props('flat dense'):
            ui.item('Left to right', on_click=lambda: do_layout(DIRECTION_LR))
            ui.item('Top to bottom', on_click=lambda: do_layout(DIRECTION_TB))
        ui.separator().props('vertical')
        ui.button(on_click=do_export).props('flat dense icon=download').tooltip('Export JSON')
        ui.button(on_click=open_import).props('flat dense icon=upload').tooltip('Import JSON')
        ui.space()
        ui.button(on_click=do_undo).props('flat dense icon=undo').tooltip('Undo last agent change')
        ui.button('Ask Agent', on_click=toggle_chat).props('dense color=primary icon=auto_awesome')
        ui.button(on_click=lambda: show_settings_dialog(session)).props('flat dense icon=settings')

    canvas = ui.interactive_image(
        size=(CANVAS_WIDTH, CANVAS_HEIGHT),
        on_mouse=handlers['handle_mouse'],
        events=['mousedown', 'mousemove', 'mouseup', 'dblclick'],
    ).style(f'width: {CANVAS_WIDTH}px; height: {CANVAS_HEIGHT}px; cursor: default;')
    canvas.on('wheel.prevent', handlers['handle_wheel'], ['offsetX', 'offsetY', 'deltaY'])
    ui.keyboard(on_key=handlers['handle_keyboard'])

    # --- Node property drawer ---

    def update_field(node_id, **changes):
        engine.update_node(node_id, **changes)
        draw_canvas()

    def parse_tags(text):
        return [t.strip() for t in (text or '').split(',') if t.strip()]

    with ui.right_drawer(value=True).classes('bg-slate-900/95 p-4').props('width=340'):

        @ui.refreshable
        def render_editor():
            node = controller.selected_node
            if not controller.editor_open or node is None:
                ui.label('Select a node to edit it. Double-click the canvas to add one.') \
                    .classes('text-gray-500 text-sm')
                return
            node_id = node.id
            ui.label('Node').classes('text-lg font-bold')
            ui.input('Title', value=node.title,
                     on_change=lambda e: update_field(node_id, title=e.value or '')).classes('w-full')
            ui.textarea('Description', value=node.description or '',
                        on_change=lambda e: update_field(node_id, description=e.value or '')) \
                .classes('w-full').props('outlined rows=4')
            ui.number('Score', value=node.score,
                      on_change=lambda e: update_field(node_id, score=e.value)).classes('w-full')
            ui.input('Tags (comma separated)', value=', '.join(node.tags or ()),
                     on_change=lambda e: update_field(node_id, tags=parse_tags(e.value))).classes('w-full')
            with ui.row().classes('w-full justify-between mt-2'):
                ui.button('Delete', on_click=delete_selection).props('flat color=negative icon=delete')
                ui.button('Close', on_click=lambda: (controller.close_editor(), refresh_canvas())).props('flat')

        render_editor()

    # --- Agent chat panel ---

    chat_panel = ui.card().classes(
        'fixed left-6 bottom-6 w-[420px] max-h-[70vh] z-20 shadow-2xl flex flex-col gap-2 '
        'bg-slate-900/95 backdrop-blur-md border border-slate-700'
    )
    chat_panel.set_visibility(False)

    def do_cancel():
        if session.cancel():
            ui.notify('Request cancelled.', position='bottom')

    with chat_panel:
        with ui.row().classes('w-full items-center justify-between'):
            ui.label('Agent').classes('text-lg font-bold')
            with ui.row().classes('gap-1'):
                ui.button(on_click=lambda: (session.clear(), render_chat.refresh())) \
                    .props('flat dense icon=delete_sweep').tooltip('Clear chat')
                ui.button(on_click=toggle_chat).props('flat dense icon=close')

        @ui.refreshable
        def render_chat():
            with ui.scroll_area().classes('w-full h-72'):
                if not session.history:
                    ui.label('Ask the agent to restructure, expand or tidy the canvas.') \
                        .classes('text-gray-500 text-sm')
                for message in session.history:
                    ui.chat_message(message['content'], name='You' if message['role'] == 'user' else 'Agent',
                                    sent=message['role'] == 'user')
            if state['agent_error']:
                ui.label(state['agent_error']).classes('text-red-500 text-sm')
            if session.busy:
                with ui.row().classes('items-center gap-2'):
                    ui.spinner(size='sm')
                    ui.label('Thinking...').classes('text-gray-400 text-sm')
                    ui.button('Cancel', on_click=do_cancel).props('flat dense color=warning')

        render_chat()

        question_input = ui.textarea(placeholder='Ask the agent...').classes('w-full').props('outlined rows=2')

        async def do_ask():
            question = (question_input.value or '').strip()
            if not question or session.busy:
                return
            if not get_api_key():
                show_api_key_dialog()
                return
            question_input.value = ''
            state['agent_error'] = None
            task = asyncio.ensure_future(session.ask(question))
            await asyncio.sleep(0)
            render_chat.refresh()
            outcome = await task
            if outcome.error:
                state['agent_error'] = outcome.error
            elif outcome.decode_error:
                state['agent_error'] = outcome.decode_error
            if outcome.changed:
                controller.sync_with_graph()
            render_chat.refresh()
            refresh_canvas()

        ui.button('Send', on_click=do_ask).props('color=primary icon=send').classes('self-end')

    refresh_canvas()


if __name__ in {"__main__", "__mp_main__"}:
    ui.run(
        title='DAG Canvas',
        port=8081,
        reload=not getattr(sys, 'frozen', False),
    )
