from hcloud.crud.directory_entry import directory_entry_crud
from hcloud.crud.file_entry import file_entry_crud
from hcloud.crud.recycle_item import recycle_item_crud
from hcloud.crud.share_link import share_link_crud

__all__ = ["directory_entry_crud", "file_entry_crud", "recycle_item_crud", "share_link_crud"]
