"""
Tree Store: the folder/file browser state for one session.

The store only holds the children of the current folder. Every mutation is
followed by a full re-fetch of that listing, so the displayed nodes always
reflect the backing store. Listings are tagged with a generation number and a
listing older than the latest requested one is dropped.
"""
import logging

from gerezim.core.exceptions import GerezimError, NotFoundError, ValidationError
from gerezim.core.notifications import ERROR, SUCCESS, log_notification
from gerezim.core.storage import generate_blob_name

logger = logging.getLogger(__name__)


def sort_nodes(nodes):
    """Folders first, then by title (case-insensitive)"""
    return sorted(nodes, key=lambda node: (not node.is_folder, node.title.lower()))


class TreeStore:

    def __init__(self, client, notify=None):
        self.client = client
        self.notify = notify or log_notification
        self.current_folder = None
        self.nodes = []
        self.generation = 0
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
        self.nodes = []
        self.closed = True

    @property
    def current_folder_id(self):
        return self.current_folder.id if self.current_folder else None

    @property
    def breadcrumb(self):
        # Only one level is tracked: the folder being displayed
        return [self.current_folder] if self.current_folder else []

    # Listing

    def list_children(self, folder_id=None):
        """Children of a folder (root when folder_id is None). Raises FetchError."""
        return sort_nodes(self.client.fetch_children(folder_id))

    def begin_fetch(self):
        self.generation += 1
        return self.generation

    def apply_listing(self, generation, nodes):
        """Install a listing unless a newer fetch was started after it. Returns True when applied."""
        if generation != self.generation:
            logger.debug(f"Discarding stale listing (generation {generation}, current {self.generation})")
            return False
        self.nodes = nodes
        return True

    def refresh(self):
        generation = self.begin_fetch()
        try:
            nodes = self.list_children(self.current_folder_id)
        except GerezimError as e:
            self.notify(ERROR, e.message)
            raise
        self.apply_listing(generation, nodes)
        return self.nodes

    def search(self, term):
        """Displayed nodes whose title or linked product title contains term"""
        term = (term or '').strip().lower()
        if not term:
            return list(self.nodes)
        return [
            node for node in self.nodes
            if term in node.title.lower() or (node.product_title and term in node.product_title.lower())
        ]

    # Navigation

    def navigate_into(self, folder_id):
        folder = self.client.fetch_node(folder_id)
        if not folder.is_folder:
            raise ValidationError('Só é possível abrir pastas')
        self.current_folder = folder
        return self.refresh()

    def navigate_up(self):
        parent_id = self.current_folder.parent_id if self.current_folder else None
        self.current_folder = self.client.fetch_node(parent_id) if parent_id else None
        return self.refresh()

    # Mutations

    def _require_title(self, title, message):
        title = (title or '').strip()
        if not title:
            raise ValidationError(message)
        return title

    def _require_folder(self, folder_id):
        if folder_id is None:
            return None
        try:
            folder = self.client.fetch_node(folder_id)
        except NotFoundError:
            raise ValidationError('Pasta de destino não encontrada')
        if not folder.is_folder:
            raise ValidationError('O destino precisa ser uma pasta')
        return folder

    def _persist(self, action, error_prefix):
        try:
            return action()
        except GerezimError as e:
            self.notify(ERROR, f"{error_prefix}: {e.message}")
            raise

    def create_folder(self, parent_id, title):
        title = self._require_title(title, 'Digite o nome da pasta')
        self._require_folder(parent_id)
        node = self._persist(
            lambda: self.client.insert_node(title=title, is_folder=True, parent_id=parent_id),
            'Erro ao criar pasta'
        )
        logger.info(f"Created folder {node.id} '{title}' under {parent_id}")
        self.notify(SUCCESS, 'Pasta criada com sucesso!')
        self.refresh()
        return node

    def create_file(self, parent_id, title, upload, description='', product_id=None):
        title = (title or '').strip()
        if not title or upload is None:
            raise ValidationError('Preencha o título e selecione um arquivo')
        self._require_folder(parent_id)

        content_type = getattr(upload, 'content_type', None)
        blob_name = generate_blob_name(getattr(upload, 'name', ''))
        file_url = self._persist(
            lambda: self.client.upload_blob(blob_name, upload, content_type),
            'Erro no upload'
        )
        try:
            node = self.client.insert_node(
                title=title,
                is_folder=False,
                parent_id=parent_id,
                description=description or '',
                file_url=file_url,
                file_type=content_type,
                file_size=getattr(upload, 'size', None),
                product_id=product_id,
            )
        except GerezimError as e:
            # The blob stays in storage, nothing references it anymore
            logger.warning(f"Orphaned blob {blob_name} after failed insert: {e.message}")
            self.notify(ERROR, f"Erro ao salvar insumo: {e.message}")
            raise
        logger.info(f"Created file {node.id} '{title}' ({blob_name})")
        self.notify(SUCCESS, 'Insumo salvo com sucesso!')
        self.refresh()
        return node

    def rename(self, node_id, title):
        title = self._require_title(title, 'O nome não pode ficar vazio')
        self._persist(lambda: self.client.update_node(node_id, title=title), 'Erro ao renomear')
        self.notify(SUCCESS, 'Insumo renomeado')
        self.refresh()

    def _ancestor_ids(self, folder_id):
        ancestors = []
        while folder_id is not None and folder_id not in ancestors:
            ancestors.append(folder_id)
            folder_id = self.client.fetch_node(folder_id).parent_id
        return ancestors

    def move(self, node_id, new_parent_id):
        """
        Reparent a node. Moving a node onto itself or to its current parent does nothing.

        Raises:
            ValidationError: the target is not a folder, or is the node's own descendant
        """
        if new_parent_id == node_id:
            return False
        node = self.client.fetch_node(node_id)
        if node.parent_id == new_parent_id:
            return False
        self._require_folder(new_parent_id)
        if node.is_folder and node_id in self._ancestor_ids(new_parent_id):
            raise ValidationError('Não é possível mover uma pasta para dentro dela mesma')

        self._persist(lambda: self.client.update_node(node_id, parent_id=new_parent_id), 'Erro ao mover')
        logger.info(f"Moved insumo {node_id} from {node.parent_id} to {new_parent_id}")
        self.notify(SUCCESS, 'Insumo movido')
        self.refresh()
        return True

    def delete(self, node_id):
        node = self.client.fetch_node(node_id)
        if not node.is_folder and node.file_url:
            try:
                self.client.remove_blob(node.file_url)
            except GerezimError as e:
                logger.error(f"Could not remove blob for insumo {node_id}: {e.message}")
        self._persist(lambda: self.client.delete_node(node_id), 'Erro ao excluir')
        if node.is_folder:
            logger.info(f"Deleted folder {node_id}; blobs of descendant files are left in storage")
        self.notify(SUCCESS, 'Insumo excluído com sucesso')
        self.refresh()
        return node
