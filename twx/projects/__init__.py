from twx.projects.catalogue import ProjectCatalogue, new_project_id

__all__ = ["ProjectCatalogue", "new_project_id"]
