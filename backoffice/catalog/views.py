import logging

from django.db.models import F, ProtectedError
from django.shortcuts import get_object_or_404
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from backoffice.core.authorization import can_view_page, IsManagerOrReadOnly, IsManager
from backoffice.core.hierarchy import (
    build_tree, flatten_tree, descendant_ids, ancestor_ids, parent_map, name_sort_key,
    CyclicHierarchyError
)
from backoffice.core.utils import create_audit_log
from .filters import ProductFilter
from .models import Category, Product
from .serializers import CategorySerializer, ProductSerializer, ProductDetailSerializer

logger = logging.getLogger(__name__)

CATEGORIES_PAGE = '/categories'
INVENTORY_PAGE = '/inventory'


def cyclic_hierarchy_response(error):
    logger.error(f"Hierarchy can not be built: {error}")
    return Response({'error': str(error), 'cycle': error.cycle}, status=status.HTTP_409_CONFLICT)


# Category views
@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, can_view_page(CATEGORIES_PAGE), IsManagerOrReadOnly])
def category_list_create(request):
    """List all categories or create a new category"""
    if request.method == 'GET':
        categories = Category.objects.all()
        serializer = CategorySerializer(categories, many=True)
        return Response(serializer.data)
    else:
        serializer = CategorySerializer(data=request.data)
        if serializer.is_valid():
            category = serializer.save()
            create_audit_log(request, 'create', 'Category', category.id, object_name=category.name)
            return Response(serializer.data, status=status.HTTP_201_CREATED)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated, can_view_page(CATEGORIES_PAGE), IsManagerOrReadOnly])
def category_detail(request, pk):
    """Retrieve, update or delete a category"""
    category = get_object_or_404(Category, pk=pk)

    if request.method == 'GET':
        data = CategorySerializer(category).data
        try:
            path = ancestor_ids(parent_map(Category.objects.values('id', 'parent')), category.id)
        except CyclicHierarchyError as e:
            return cyclic_hierarchy_response(e)
        names = dict(Category.objects.filter(id__in=path).values_list('id', 'name'))
        data['path'] = [{'id': ancestor, 'name': names[ancestor]} for ancestor in reversed(path)]
        return Response(data)
    elif request.method in ('PUT', 'PATCH'):
        serializer = CategorySerializer(category, data=request.data, partial=request.method == 'PATCH')
        if serializer.is_valid():
            serializer.save()
            create_audit_log(request, 'update', 'Category', category.id, changes=request.data, object_name=category.name)
            return Response(serializer.data)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    else:  # DELETE - the category goes together with all of its sub-categories
        removed = descendant_ids(Category.objects.values('id', 'parent'), category.id)
        create_audit_log(
            request, 'delete', 'Category', category.id,
            changes={'subcategories': sorted(removed)}, object_name=category.name
        )
        category.delete()
        return Response(status=status.HTTP_204_NO_CONTENT)


@api_view(['GET'])
@permission_classes([IsAuthenticated, can_view_page(CATEGORIES_PAGE)])
def category_tree(request):
    """Categories as a tree sorted by name; ?flat=true returns indented rows"""
    categories = CategorySerializer(Category.objects.all(), many=True).data
    try:
        roots = build_tree(categories, parent_field='parent', sort_key=name_sort_key)
    except CyclicHierarchyError as e:
        return cyclic_hierarchy_response(e)

    if request.query_params.get('flat', '').lower() in ('1', 'true', 'yes'):
        rows = []
        for node, level in flatten_tree(roots):
            row = {key: value for key, value in node.items() if key != 'children'}
            row['level'] = level
            row['has_children'] = bool(node['children'])
            rows.append(row)
        return Response(rows)
    return Response(roots)


@api_view(['GET'])
@permission_classes([IsAuthenticated, can_view_page(CATEGORIES_PAGE), IsManager])
def category_parent_choices(request, pk):
    """Categories that can become the parent of `pk`: everything outside its own subtree"""
    category = get_object_or_404(Category, pk=pk)
    excluded = descendant_ids(Category.objects.values('id', 'parent'), category.id)
    excluded.add(category.id)
    choices = Category.objects.exclude(id__in=excluded).order_by('name')
    return Response(CategorySerializer(choices, many=True).data)


# Product views
@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, can_view_page(INVENTORY_PAGE), IsManagerOrReadOnly])
def product_list_create(request):
    """List products (filterable) or create a new product"""
    if request.method == 'GET':
        queryset = Product.objects.select_related('category').all()
        queryset = ProductFilter(request.query_params, queryset=queryset).qs
        serializer = ProductSerializer(queryset, many=True)
        return Response(serializer.data)
    else:
        serializer = ProductSerializer(data=request.data)
        if serializer.is_valid():
            product = serializer.save()
            create_audit_log(request, 'create', 'Product', product.id, object_name=product.name)
            return Response(serializer.data, status=status.HTTP_201_CREATED)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated, can_view_page(INVENTORY_PAGE), IsManagerOrReadOnly])
def product_detail(request, pk):
    """Retrieve, update or delete a product. Stock changes are kept in its history."""
    product = get_object_or_404(Product.objects.select_related('category'), pk=pk)

    if request.method == 'GET':
        serializer = ProductDetailSerializer(product)
        return Response(serializer.data)
    elif request.method in ('PUT', 'PATCH'):
        old_stock = product.stock
        serializer = ProductDetailSerializer(product, data=request.data, partial=request.method == 'PATCH')
        if serializer.is_valid():
            product = serializer.save()
            if product.stock != old_stock:
                create_audit_log(
                    request, 'stock_update', 'Product', product.id,
                    changes={'stock': {'old': old_stock, 'new': product.stock}}, object_name=product.name
                )
            return Response(serializer.data)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    else:  # DELETE
        try:
            product.delete()
        except ProtectedError:
            return Response(
                {'error': 'Product is used by orders, purchase orders or issuances and can not be deleted.'},
                status=status.HTTP_400_BAD_REQUEST
            )
        create_audit_log(request, 'delete', 'Product', pk, object_name=product.name)
        return Response(status=status.HTTP_204_NO_CONTENT)


@api_view(['GET'])
@permission_classes([IsAuthenticated, can_view_page(INVENTORY_PAGE)])
def product_low_stock(request):
    """Products at or below their reorder level"""
    products = Product.objects.select_related('category').filter(stock__lte=F('reorder_level')).order_by('stock', 'name')
    return Response(ProductSerializer(products, many=True).data)
