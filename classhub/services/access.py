"""
Ownership checks for assignments.

A student may only touch their own assignments (matched on studentAuthUID);
a teacher may only review assignments in classes they own (teacherUID on
the class row).
"""
from ..errors import PermissionDenied, Unauthenticated


def require_user(user_id):
    if not user_id:
        raise Unauthenticated("You must be logged in.")
    return user_id


def is_student_owner(assignment, user_id) -> bool:
    owner = assignment.get('studentAuthUID')
    return bool(owner) and owner == user_id


def is_class_teacher(store, class_id, user_id) -> bool:
    if not class_id:
        return False
    class_row = store.get_class(class_id)
    return bool(class_row.get('teacherUID')) and class_row.get('teacherUID') == user_id


def require_student_owner(assignment, user_id):
    require_user(user_id)
    if not is_student_owner(assignment, user_id):
        raise PermissionDenied("You do not have permission to access this assignment.")


def require_class_teacher(store, class_id, user_id):
    require_user(user_id)
    if not is_class_teacher(store, class_id, user_id):
        raise PermissionDenied("You do not teach this class.")
