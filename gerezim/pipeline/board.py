"""
Pipeline Board: kanban state for the opportunities of one session.

Stage moves are optimistic: the card changes column before the store confirms,
and goes back to its previous column when the store fails. Creating, editing
and deleting cards write first and re-load the whole board afterwards.
"""
import logging

from gerezim.core.exceptions import EnrichmentError, GerezimError, NotFoundError, ValidationError
from gerezim.core.notifications import ERROR, SUCCESS, log_notification
from gerezim.core.optimistic import set_attribute_optimistically
from gerezim.core.utils import parse_optional_id
from .models import PipelineStage, STAGE_ORDER
from .serializers import CardFieldsSerializer

logger = logging.getLogger(__name__)

FIELD_ERRORS = {
    'category': 'Categoria inválida',
    'status': 'Status inválido',
    'pipeline_stage': 'Etapa inválida',
}
VALUE_ERROR = 'Digite um valor válido'
TITLE_ERROR = 'Digite um título para a oportunidade'


def stage_label(stage):
    return PipelineStage(stage).label


def validate_stage(stage):
    if stage not in STAGE_ORDER:
        raise ValidationError(f"Etapa inválida: {stage}")
    return stage


def normalize_value(value):
    """Accept a comma decimal separator, as typed in the card form"""
    if isinstance(value, str):
        return value.strip().replace(',', '.')
    return value


def clean_fields(fields, partial=False):
    """
    Validate card fields coming from a form and map them to model columns.
    Unknown keys are ignored.
    """
    data = {key: fields[key] for key in CardFieldsSerializer().fields if key in fields}
    if not partial or 'title' in data:
        if not str(data.get('title') or '').strip():
            raise ValidationError(TITLE_ERROR)
    if 'value' in data:
        if data['value'] in (None, ''):
            raise ValidationError(VALUE_ERROR)
        data['value'] = normalize_value(data['value'])

    serializer = CardFieldsSerializer(data=data, partial=partial)
    if not serializer.is_valid():
        field = next(iter(serializer.errors))
        if field == 'value':
            raise ValidationError(VALUE_ERROR)
        if field == 'title':
            raise ValidationError(TITLE_ERROR)
        if field in FIELD_ERRORS:
            raise ValidationError(f"{FIELD_ERRORS[field]}: {data.get(field)}")
        raise ValidationError(f"{field}: {serializer.errors[field][0]}")

    cleaned = dict(serializer.validated_data)
    if 'category' in cleaned:
        cleaned['category'] = cleaned['category'] or None
    for key in ('notes', 'description', 'location'):
        if key in cleaned:
            cleaned[key] = cleaned[key] or None
    for key in ('contact', 'product'):
        if key in fields:
            cleaned[f"{key}_id"] = parse_optional_id(fields[key])
    return cleaned


class PipelineBoard:

    def __init__(self, client, notify=None):
        self.client = client
        self.notify = notify or log_notification
        self.cards = []
        self.dragging_id = None
        self.drag_over_stage = None
        self.closed = False

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_value, traceback):
        self.close()
        return False

    def close(self):
        if self.closed:
            return
        self.client.close()
        self.cards = []
        self.closed = True

    def load_board(self):
        """Fetch every card and attach contact/product display data. Raises FetchError."""
        try:
            cards = self.client.fetch_all()
        except GerezimError as e:
            self.notify(ERROR, e.message)
            raise
        self._enrich(cards)
        self.cards = cards
        return self.cards

    def _lookup(self, fetch, ids, association):
        if not ids:
            return {}
        try:
            return fetch(ids)
        except EnrichmentError as e:
            logger.warning(f"Could not load {association} for {len(ids)} card(s): {e.message}")
            return {}

    def _enrich(self, cards):
        contacts = self._lookup(self.client.fetch_contacts, {c.contact_id for c in cards if c.contact_id}, 'contacts')
        products = self._lookup(self.client.fetch_products, {c.product_id for c in cards if c.product_id}, 'products')
        for card in cards:
            contact = contacts.get(card.contact_id)
            if contact:
                card.contact_name = contact['name']
                card.contact_avatar = contact['avatar_url']
            product = products.get(card.product_id)
            if product:
                card.product_title = product['title']
                card.product_thumbnail = product['thumbnail']

    def columns(self):
        """Cards grouped by stage, every stage present, in funnel order"""
        return {stage: [card for card in self.cards if card.pipeline_stage == stage] for stage in STAGE_ORDER}

    def get_card(self, card_id):
        for card in self.cards:
            if card.id == card_id:
                return card
        raise NotFoundError(f"Oportunidade {card_id} não encontrada")

    def move_card(self, card_id, target_stage):
        """
        Move a card to another stage. Returns False when it already is there.

        Raises:
            ValidationError: unknown stage
            GerezimError: the store failed; the card is back in its previous stage
        """
        validate_stage(target_stage)
        card = self.get_card(card_id)
        if card.pipeline_stage == target_stage:
            return False
        previous_stage = card.pipeline_stage
        try:
            set_attribute_optimistically(
                card, 'pipeline_stage', target_stage,
                lambda: self.client.update_stage(card_id, target_stage)
            )
        except GerezimError as e:
            self.notify(ERROR, f"Erro ao mover: {e.message}")
            raise
        logger.info(f"Opportunity {card_id} moved from {previous_stage} to {target_stage}")
        self.notify(SUCCESS, f'Oportunidade movida para "{stage_label(target_stage)}"')
        return True

    def create_card(self, target_stage, fields):
        validate_stage(target_stage)
        cleaned = clean_fields(fields)
        cleaned.pop('pipeline_stage', None)
        try:
            card = self.client.insert(pipeline_stage=target_stage, **cleaned)
        except GerezimError as e:
            self.notify(ERROR, f"Erro ao criar: {e.message}")
            raise
        self.notify(SUCCESS, f'Oportunidade criada em "{stage_label(target_stage)}"')
        self.load_board()
        try:
            return self.get_card(card.id)
        except NotFoundError:
            return card

    def update_card(self, card_id, fields):
        cleaned = clean_fields(fields, partial=True)
        if not cleaned:
            raise ValidationError('Nenhum campo para atualizar')
        try:
            self.client.update(card_id, **cleaned)
        except GerezimError as e:
            self.notify(ERROR, f"Erro ao atualizar: {e.message}")
            raise
        self.notify(SUCCESS, 'Oportunidade atualizada')
        self.load_board()
        return self.get_card(card_id)

    def delete_card(self, card_id):
        try:
            self.client.delete(card_id)
        except GerezimError as e:
            self.notify(ERROR, f"Erro ao excluir: {e.message}")
            raise
        self.notify(SUCCESS, 'Oportunidade excluída')
        self.load_board()

    # Drag gesture

    def start_drag(self, card_id):
        self.get_card(card_id)
        self.dragging_id = card_id

    def drag_enter(self, stage):
        self.drag_over_stage = validate_stage(stage)

    def drag_leave(self):
        self.drag_over_stage = None

    def end_drag(self):
        self.dragging_id = None
        self.drag_over_stage = None

    def drop(self, stage):
        """Drop the dragged card on a stage. The drag markers are cleared even when the move fails."""
        card_id = self.dragging_id
        self.end_drag()
        if card_id is None:
            return False
        return self.move_card(card_id, stage)
